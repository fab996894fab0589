import logging
import os.path

from klaytx.abi import encode_function_call
from klaytx.client import KlayClient
from klaytx.keys import Keyring
from klaytx.model import FeeDelegatedSmartContractExecution

logging.basicConfig(level=logging.INFO)

# --- Configuration Section ---
url = 'http://localhost:8551'  # Specifies the URL of the Klaytn node's RPC endpoint. This is the default local endpoint of a Klaytn node.
klaytn_data_dir = './projects/klaytn/data'  # The path to the Klaytn node data directory.
                                            # This directory contains the keystore file of the sender.
fee_payer_key = os.environ.get('FEE_PAYER_KEY')  # The private key of the account paying the fee, read from the environment.
token_address = '0x7b65b75d204abed71587c9e519a89277766ee1d0'  # The address of the token contract to call.
recipient = '0x' + 'bb' * 20  # The account receiving the tokens.

# --- Key and Client Initialization ---
key_file = os.path.join(klaytn_data_dir, 'keystore/sender.json')
# Constructs the full path to the sender's keystore file using os.path.join for OS compatibility.

sender = Keyring.from_keystore_file(key_file)  # Decrypts the sender's keystore into a keyring.
fee_payer = Keyring.from_private_key(fee_payer_key)  # Builds the fee payer's keyring from its private key.

client = KlayClient(url)  # Connects to the node. Transactions use it to fill nonce, chain id and gas price.

# --- Transaction Construction ---
call_data = encode_function_call('transfer(address,uint256)', ['address', 'uint256'], [recipient, 10 ** 18])
# Builds the call data: the 4-byte selector of `transfer(address,uint256)` followed by the ABI-encoded arguments.

tx = FeeDelegatedSmartContractExecution(from_=sender.address, to=token_address, gas=100000, input=call_data,
                                        client=client)
# Constructs the fee-delegated execution. Nonce, gas price and chain id are left unset:
# `fill()` fetches them from the node when the transaction is first signed.

# --- Signing by the Sender ---
tx.sign_with_key(sender)
# Signs with the sender's transaction key. The signature goes into `tx.signatures`.

sender_raw = tx.get_rlp_encoding()
# The sender-signed raw transaction. In a real deployment this is what the sender hands over to the fee payer.
print(f'sender tx hash: {tx.get_sender_tx_hash()}')
# The sender tx hash does not change when the fee payer signs, so it identifies the transaction from now on.

# --- Signing by the Fee Payer ---
fee_payer_tx = FeeDelegatedSmartContractExecution.decode(sender_raw)
fee_payer_tx.client = client
# The fee payer decodes what it received. Chain id is not on the wire, so it gets filled from the node.

fee_payer_tx.sign_as_fee_payer(fee_payer)
# Sets `fee_payer` to the fee payer's address and appends its signature to `fee_payer_signatures`.

# --- Sending ---
tx_hash = client.send_raw_transaction(fee_payer_tx.get_raw_transaction())
receipt = client.wait_for_transaction_receipt(tx_hash)
print(f'{tx_hash}: status {receipt.get("status")}')
