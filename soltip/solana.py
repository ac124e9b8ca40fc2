"""
Solana RPC access.

Tips are signed and sent by the supporter's own wallet; the backend only
needs to read the resulting transaction. This module talks to the cluster
over plain JSON-RPC and knows how to build Solscan links for the
configured network.
"""

import logging
import time

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

RPC_TIMEOUT = 15


class SolanaRPCError(Exception):
    """The RPC endpoint could not be reached or answered with an error."""


def get_network():
    """Return ``devnet`` or ``mainnet`` depending on the configured RPC URL."""
    return 'devnet' if 'devnet' in settings.SOLANA_RPC_URL else 'mainnet'


def explorer_url(signature):
    url = f"https://solscan.io/tx/{signature}"
    if get_network() == 'devnet':
        url += "?cluster=devnet"
    return url


def get_transaction(signature):
    """
    Fetch a confirmed transaction by signature.

    Returns:
        dict: The jsonParsed transaction, or None if the cluster does not
        know the signature (yet)

    Raises:
        SolanaRPCError: On transport failures or JSON-RPC errors
    """
    try:
        resp = requests.post(settings.SOLANA_RPC_URL, json={
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getTransaction",
            "params": [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0
                }
            ]
        }, timeout=RPC_TIMEOUT)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise SolanaRPCError(f"Solana RPC request failed: {e}") from e

    if data.get("error"):
        raise SolanaRPCError(f"Solana RPC error: {data['error']}")
    return data.get("result")


def fetch_transaction_with_retry(signature, max_retries=None, delay=None):
    """
    Fetch a transaction, retrying while the cluster has not indexed it.

    Freshly sent transactions can take a few seconds to become visible to
    ``getTransaction``, so missing results and RPC errors are retried.

    Args:
        signature: Base58 transaction signature
        max_retries: Attempts before giving up (settings.SOLANA_TX_MAX_RETRIES)
        delay: Seconds between attempts (settings.SOLANA_TX_RETRY_DELAY)

    Returns:
        dict: The transaction, or None when every attempt came back empty
    """
    if max_retries is None:
        max_retries = settings.SOLANA_TX_MAX_RETRIES
    if delay is None:
        delay = settings.SOLANA_TX_RETRY_DELAY

    for attempt in range(1, max_retries + 1):
        try:
            tx = get_transaction(signature)
        except SolanaRPCError as e:
            logger.warning("Attempt %s/%s to fetch %s failed: %s", attempt, max_retries, signature, e)
            tx = None
        if tx:
            return tx
        logger.info("Transaction %s not found yet (attempt %s/%s)", signature, attempt, max_retries)
        if attempt < max_retries:
            time.sleep(delay)
    return None
