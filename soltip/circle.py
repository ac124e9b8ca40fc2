"""
Circle developer-controlled wallets client.

Each creator gets a custodial Solana wallet from Circle when onboarding
completes; tips land there and withdrawals are Circle transfers out of it.
The client calls Circle's REST API directly.

Write operations need an ``entitySecretCiphertext``: the hex entity secret
encrypted with RSA-OAEP (SHA-256) under the entity public key Circle
publishes, base64 encoded. Circle rejects reused ciphertexts, so a new one
is produced for every request.
"""

import base64
import logging
import uuid
from decimal import Decimal, InvalidOperation

import requests
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from django.conf import settings

logger = logging.getLogger(__name__)

# Circle transaction states that will not change any more
CIRCLE_TERMINAL_STATES = ('COMPLETE', 'FAILED', 'CANCELLED', 'DENIED')
CIRCLE_FAILED_STATES = ('FAILED', 'CANCELLED', 'DENIED')


class CircleError(Exception):
    """A Circle API call failed."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class CircleClient:
    """
    Thin wrapper over the Circle Web3 Services wallet endpoints.

    Args:
        api_key: Circle API key (Bearer token)
        entity_secret: 32-byte entity secret, hex encoded
        wallet_set_id: Wallet set new creator wallets are created in
        base_url: API root, https://api.circle.com by default
        blockchain: Chain identifier for new wallets, e.g. SOL-DEVNET
        usdc_token_id: Circle token id of USDC on that chain
    """

    def __init__(self, api_key, entity_secret, wallet_set_id, base_url='https://api.circle.com',
                 blockchain='SOL-DEVNET', usdc_token_id='', timeout=15):
        self.api_key = api_key
        self.entity_secret = entity_secret
        self.wallet_set_id = wallet_set_id
        self.base_url = base_url.rstrip('/')
        self.blockchain = blockchain
        self.usdc_token_id = usdc_token_id
        self.timeout = timeout
        self._public_key = None

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
        }
        try:
            resp = requests.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise CircleError(f"Circle request failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        if resp.status_code >= 400:
            message = (payload or {}).get('message') or f"Circle API returned {resp.status_code}"
            raise CircleError(message, status_code=resp.status_code, payload=payload)
        return (payload or {}).get('data') or {}

    def _get_public_key(self):
        if self._public_key is None:
            data = self._request('GET', '/v1/w3s/config/entity/publicKey')
            pem = data.get('publicKey')
            if not pem:
                raise CircleError("Circle did not return an entity public key")
            self._public_key = serialization.load_pem_public_key(pem.encode())
        return self._public_key

    def entity_secret_ciphertext(self):
        """Encrypt the entity secret for a single write request."""
        ciphertext = self._get_public_key().encrypt(
            bytes.fromhex(self.entity_secret),
            padding.OAEP(
                mgf=padding.MGF1(algorithm=hashes.SHA256()),
                algorithm=hashes.SHA256(),
                label=None,
            ),
        )
        return base64.b64encode(ciphertext).decode()

    def create_wallet(self, ref_id):
        """
        Create a wallet for a creator.

        Args:
            ref_id: Our identifier for the owner, stored as Circle refId

        Returns:
            dict: ``{"id", "address", "blockchain"}`` of the new wallet
        """
        data = self._request('POST', '/v1/w3s/developer/wallets', json={
            'idempotencyKey': str(uuid.uuid4()),
            'entitySecretCiphertext': self.entity_secret_ciphertext(),
            'walletSetId': self.wallet_set_id,
            'blockchains': [self.blockchain],
            'count': 1,
            'metadata': [{'name': f'Wallet for {ref_id}', 'refId': str(ref_id)}],
        })
        wallets = data.get('wallets') or []
        if not wallets:
            raise CircleError("Circle returned no wallet")
        wallet = wallets[0]
        logger.info("Created Circle wallet %s for %s", wallet.get('id'), ref_id)
        return {
            'id': wallet.get('id'),
            'address': wallet.get('address'),
            'blockchain': wallet.get('blockchain'),
        }

    def get_usdc_balance(self, wallet_id):
        """
        USDC balance of a wallet.

        Returns:
            Decimal: The balance, or 0 if it cannot be determined
        """
        try:
            data = self._request('GET', f'/v1/w3s/wallets/{wallet_id}/balances')
        except CircleError as e:
            logger.warning("Could not fetch balance for wallet %s: %s", wallet_id, e)
            return Decimal('0')

        for balance in data.get('tokenBalances') or []:
            token = balance.get('token') or {}
            if token.get('symbol') == 'USDC' or 'USD Coin' in (token.get('name') or ''):
                try:
                    return Decimal(str(balance.get('amount', '0')))
                except InvalidOperation:
                    logger.warning("Unparseable balance for wallet %s: %r", wallet_id, balance.get('amount'))
                    return Decimal('0')
        return Decimal('0')

    def create_withdrawal(self, wallet_id, destination_address, amount):
        """
        Transfer USDC out of a creator wallet.

        Returns:
            dict: ``{"id", "state"}`` of the Circle transaction
        """
        data = self._request('POST', '/v1/w3s/developer/transactions/transfer', json={
            'idempotencyKey': str(uuid.uuid4()),
            'entitySecretCiphertext': self.entity_secret_ciphertext(),
            'walletId': wallet_id,
            'tokenId': self.usdc_token_id,
            'destinationAddress': destination_address,
            'amounts': [str(amount)],
            'feeLevel': 'LOW',
            'refId': f'withdrawal-{uuid.uuid4()}',
        })
        if not data.get('id'):
            raise CircleError("Circle returned no transaction id")
        logger.info("Circle withdrawal %s created from wallet %s", data.get('id'), wallet_id)
        return {'id': data.get('id'), 'state': data.get('state')}

    def get_transaction(self, transaction_id):
        """Current state of a Circle transaction."""
        data = self._request('GET', f'/v1/w3s/transactions/{transaction_id}')
        tx = data.get('transaction')
        if not tx:
            raise CircleError(f"Circle transaction {transaction_id} not found")
        amounts = tx.get('amounts') or []
        return {
            'id': tx.get('id'),
            'state': tx.get('state'),
            'type': tx.get('transactionType') or tx.get('type'),
            'walletId': tx.get('walletId'),
            'sourceAddress': tx.get('sourceAddress'),
            'destinationAddress': tx.get('destinationAddress'),
            'amount': amounts[0] if amounts else None,
            'blockchain': tx.get('blockchain'),
            'txHash': tx.get('txHash'),
            'networkFee': tx.get('networkFee'),
            'createDate': tx.get('createDate'),
            'updateDate': tx.get('updateDate'),
            'errorCode': tx.get('errorReason') or tx.get('errorCode'),
            'failureReason': tx.get('errorDetails') or tx.get('failureReason'),
        }


def get_circle_client():
    """Client configured from settings."""
    return CircleClient(
        api_key=settings.CIRCLE_API_KEY,
        entity_secret=settings.CIRCLE_ENTITY_SECRET,
        wallet_set_id=settings.CIRCLE_WALLET_SET_ID,
        base_url=settings.CIRCLE_API_URL,
        blockchain=settings.CIRCLE_BLOCKCHAIN,
        usdc_token_id=settings.CIRCLE_USDC_TOKEN_ID,
        timeout=settings.CIRCLE_TIMEOUT,
    )
