from typing import Dict, List, Tuple

import structlog
from diff_match_patch import diff_match_patch

from editmode.models import Edit

logger = structlog.get_logger(__name__)

POSITIONAL = "positional"
LCS = "lcs"
ALIGNMENTS = (POSITIONAL, LCS)


def pair_positional(original_tokens: List[str], edited_tokens: List[str]) -> List[Edit]:
    """
    Pairs tokens by index up to the shorter sequence and emits an Edit for
    every pair that differs. Assumes element order and count did not change.
    """
    count = min(len(original_tokens), len(edited_tokens))
    edits = []
    for i in range(count):
        old_text = original_tokens[i]
        new_text = edited_tokens[i]
        if old_text != new_text:
            edits.append(Edit(old_text=old_text, new_text=new_text))
    return edits


def pair_aligned(original_tokens: List[str], edited_tokens: List[str]) -> List[Edit]:
    """
    Aligns the two token sequences on their longest common subsequence
    (token-level diff) and pairs each replaced run positionally. Tokens
    that were only inserted or only removed produce no edits.
    """
    dmp = diff_match_patch()

    # 1. Token-Level Encoding
    chars1, chars2, token_array = _tokens_to_chars(original_tokens, edited_tokens)

    # 2. Compute Diff on the Encoded Strings
    diffs = dmp.diff_main(chars1, chars2, False)

    edits = []
    pending_delete: List[str] = []

    for op, text in diffs:
        decoded = [token_array[ord(ch)] for ch in text]

        if op == 0:  # Equal
            pending_delete = []

        elif op == -1:  # Delete
            # Defer to check for an immediate insertion (Replacement)
            pending_delete = decoded

        elif op == 1:  # Insert
            if pending_delete:
                edits.extend(pair_positional(pending_delete, decoded))
                if len(pending_delete) != len(decoded):
                    logger.info(f"Unequal replaced run ({len(pending_delete)} -> {len(decoded)} tokens).")
                pending_delete = []
            else:
                logger.debug(f"Ignoring {len(decoded)} inserted tokens.")

    return edits


def _tokens_to_chars(tokens1: List[str], tokens2: List[str]) -> Tuple[str, str, List[str]]:
    """
    Encodes each distinct token as a unique Unicode character so the
    character diff works at token granularity.
    """
    token_array: List[str] = []
    token_hash: Dict[str, int] = {}

    def encode(tokens: List[str]) -> str:
        encoded_chars = []
        for token in tokens:
            if token not in token_hash:
                token_hash[token] = len(token_array)
                token_array.append(token)
            encoded_chars.append(chr(token_hash[token]))
        return "".join(encoded_chars)

    chars1 = encode(tokens1)
    chars2 = encode(tokens2)
    return chars1, chars2, token_array


def generate_edits_from_tokens(
    original_tokens: List[str],
    edited_tokens: List[str],
    alignment: str = POSITIONAL,
) -> List[Edit]:
    if alignment == POSITIONAL:
        return pair_positional(original_tokens, edited_tokens)
    if alignment == LCS:
        return pair_aligned(original_tokens, edited_tokens)
    raise ValueError(f"Unknown alignment: {alignment}")
