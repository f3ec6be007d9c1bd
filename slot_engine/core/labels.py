"""Account label codec.

Pool accounts are named after the range of global slot numbers they hold:
batch index 0 owns slots 1..8 and is labelled ``1a8@<domain>``, index 1 owns
9..16 (``9a16@<domain>``) and so on. Labels that do not follow this exact
shape belong to operator-created accounts and are never used for growth.
"""

import re
from typing import Optional

LABEL_PATTERN = re.compile(r"^([0-9]+)a([0-9]+)$")


class AccountLabelCodec:
    """Converts between batch indexes and account labels."""

    def __init__(self, domain: str, slots_per_account: int = 8):
        if slots_per_account < 1:
            raise ValueError("slots_per_account must be at least 1")

        self.domain = domain.lower()
        self.slots_per_account = slots_per_account

    def first_slot_number(self, index: int) -> int:
        """Global number of the first slot owned by the batch."""
        if index < 0:
            raise ValueError(f"Batch index must be non-negative, got {index}")
        return index * self.slots_per_account + 1

    def label_for_index(self, index: int) -> str:
        start = self.first_slot_number(index)
        end = start + self.slots_per_account - 1
        return f"{start}a{end}@{self.domain}"

    def index_for_label(self, label: str) -> Optional[int]:
        """Parse a label back into its batch index, or None if it is not a pool label."""
        if not label or label.count("@") != 1:
            return None

        local_part, domain = label.split("@")
        if domain.lower() != self.domain:
            return None

        match = LABEL_PATTERN.match(local_part)
        if not match:
            return None

        start = int(match.group(1))
        if start < 1 or (start - 1) % self.slots_per_account != 0:
            return None

        index = (start - 1) // self.slots_per_account
        # Rejects wrong range widths and zero-padded numbers
        if self.label_for_index(index) != label.lower():
            return None

        return index

    def display_name(self, index: int, position: int) -> str:
        """Human-facing slot name: its global slot number."""
        return str(self.first_slot_number(index) + position - 1)
