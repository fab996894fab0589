import logging
from typing import Union

from web3 import Web3
from web3.types import RPCEndpoint

from klaytx.utils import normalize_address

logger = logging.getLogger(__name__)


class KlayRPCError(OSError):
    """An error returned by the node for a `klay_` call."""

    def __init__(self, method: str, error):
        self.method = method
        self.error = error
        super().__init__(f'{method} failed: {error}')


class KlayClient:
    """
    A thin client for the node RPC calls transactions depend on.
    It is what a transaction's `client` is usually set to, so `fill()` can fetch
    the nonce, chain id and gas price, and it submits raw transactions.
    """

    def __init__(self, url: str, provider=None):
        """
        Initializes the client.

        Args:
            url (str): The URL of the node (e.g., 'http://localhost:8551').
            provider (optional): A web3 provider to use instead of an HTTP provider on `url`.
        """
        self.url = url
        self.w3 = Web3(provider or Web3.HTTPProvider(url))

    def _request(self, method: str, params: list):
        logger.debug('rpc %s %s', method, params)
        response = self.w3.provider.make_request(RPCEndpoint(method), params)
        if response.get('error') is not None:
            raise KlayRPCError(method, response['error'])
        return response.get('result')

    def get_transaction_count(self, address: str, block_identifier: str = 'pending') -> str:
        """
        Retrieves the transaction count (nonce) of an account.
        'pending' ensures that transactions already in the pool are accounted for.

        Args:
            address (str): The account address.
            block_identifier (str): The block to read the count at. Defaults to 'pending'.

        Returns:
            str: The nonce as a hex string.
        """
        return self._request('klay_getTransactionCount', [normalize_address('address', address), block_identifier])

    def get_chain_id(self) -> str:
        return self._request('klay_chainID', [])

    def get_gas_price(self) -> str:
        return self._request('klay_gasPrice', [])

    def send_raw_transaction(self, raw_transaction: Union[str, bytes]) -> str:
        """
        Submits a signed raw transaction.

        Args:
            raw_transaction (Union[str, bytes]): The RLP-encoded and signed transaction.

        Returns:
            str: The transaction hash reported by the node.
        """
        if isinstance(raw_transaction, bytes):
            raw_transaction = Web3.to_hex(raw_transaction)
        tx_hash = self._request('klay_sendRawTransaction', [raw_transaction])
        logger.info('submitted %s as %s', raw_transaction, tx_hash)
        return tx_hash

    def wait_for_transaction_receipt(self, tx_hash: str, timeout: float = 120, poll_latency: float = 0.1):
        """
        Waits for a submitted transaction to be included in a block and returns its receipt.
        Klaytn nodes serve the `eth_` namespace, so web3's own receipt wait is used.

        Args:
            tx_hash (str): The transaction hash.
            timeout (float): Seconds to wait before giving up. Defaults to 120.
            poll_latency (float): Seconds between polls. Defaults to 0.1.

        Returns:
            web3.types.TxReceipt: The transaction receipt.

        Raises:
            web3.exceptions.TimeExhausted: If no receipt shows up within `timeout`.
        """
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout, poll_latency=poll_latency)
        logger.info('receipt of %s: status %s', tx_hash, receipt.get('status'))
        return receipt
