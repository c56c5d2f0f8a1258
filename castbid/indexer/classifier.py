"""
Peer-to-peer classification of collectible Transfer events.
"""

from .contracts import ZERO_ADDRESS


class TransferClassifier:
    """A transfer is P2P unless it is a mint, a burn, or touches the auction contract"""

    def __init__(self, auction_contract: str):
        self.auction_contract = auction_contract.lower()
        self._excluded = {ZERO_ADDRESS.lower(), self.auction_contract}

    def classify(self, from_address: str, to_address: str) -> bool:
        return (
            from_address.lower() not in self._excluded
            and to_address.lower() not in self._excluded
        )
