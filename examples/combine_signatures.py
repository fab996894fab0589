import logging

from klaytx.client import KlayClient
from klaytx.keys import Keyring
from klaytx.model import ValueTransfer

logging.basicConfig(level=logging.DEBUG)

# --- Configuration Section ---
url = 'http://localhost:8551'  # Specifies the URL of the Klaytn node's RPC endpoint.
multisig_address = '0x' + 'aa' * 20  # A multi-signature account, updated beforehand to a weighted key of two keys.
member_keys = ['0x' + '11' * 32, '0x' + '22' * 32]  # The private keys held by the two members of the account.
                                                    # Placeholders: use your own.
recipient = '0x' + 'bb' * 20  # The account receiving the KLAY.

client = KlayClient(url)

# --- Base Transaction ---
# Every member builds the same transfer. Signing fills nonce, chain id and gas price from the node.
def new_transfer():
    return ValueTransfer(from_=multisig_address, to=recipient, value=10 ** 18, gas=50000, client=client)


# --- Independent Signing ---
members = [Keyring.from_keys(multisig_address, [key]) for key in member_keys]
# Each member holds a keyring of the shared account with only their own key in it.

signed_copies = []
for member in members:
    copy = new_transfer()
    copy.sign_with_key(member)
    signed_copies.append(copy.get_rlp_encoding())
# Each member signs a copy of their own and hands over the raw transaction.
# Copies must agree on every field; a mismatch makes the combination fail.

# --- Combination ---
tx = new_transfer()
raw = tx.combine_signatures(signed_copies)
# The collector starts from an unsigned transaction. Missing nonce and gas price are taken from the first copy,
# then the signatures are appended in the order the copies are given.

print(f'{len(tx.signatures)} signatures collected')

tx_hash = client.send_raw_transaction(raw)
print(f'sent {tx_hash}')
