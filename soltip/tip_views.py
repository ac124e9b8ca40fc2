"""
Soltip Views: tips

A tip is a USDC transfer a supporter signs in their own wallet. Once the
wallet reports a signature, the frontend calls ``submit_tip`` and the
backend records the tip after finding the transaction on chain.

Endpoints:
- submit_tip: verify an on-chain transfer and record a completed tip
- tips: create a pending tip intent (POST) or list all tips (GET, admins)
- user_tips / creator_tips: tips received by a user / public recent tips
- tip_detail: read, update status or delete a single tip
"""

import logging
import uuid

from django.conf import settings
from django.db import IntegrityError, transaction as db_transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated

from .models import Creator, Transaction
from .permissions import ensure_self_or_permission
from .responses import ApiError, api_success
from .serializers import (
    PublicTipSerializer,
    TipCreateSerializer,
    TipSubmitSerializer,
    TransactionSerializer,
    TransactionStatusSerializer,
)
from .solana import explorer_url, fetch_transaction_with_retry, get_network
from .throttles import ApiRateThrottle, FinancialRateThrottle, GlobalRateThrottle
from .utils import calculate_platform_fee, get_client_ip, get_user_agent, paginate, parse_int

logger = logging.getLogger(__name__)

TX_NOT_FOUND_MESSAGE = 'Transaction not found on Solana blockchain after multiple attempts. Please try again later.'


def get_recipient_or_404(username):
    recipient = Creator.objects.select_related('user').filter(username=username.strip().lower()).first()
    if recipient is None:
        raise ApiError('Recipient not found', status.HTTP_404_NOT_FOUND)
    return recipient


def _client_info(request):
    return {'ipAddress': get_client_ip(request), 'userAgent': get_user_agent(request)}


def record_tip_intent(request, recipient, amount, sender_wallet, message=''):
    """
    Record a pending tip before the supporter signs the transfer.

    The placeholder signature keeps ``tx_signature`` unique until the
    real signature is known.
    """
    fee = calculate_platform_fee(amount)
    return Transaction.objects.create(
        type='tip',
        status='pending',
        amount=amount,
        currency='USDC',
        fee=fee,
        net_amount=amount - fee,
        tx_signature=f'pending-{uuid.uuid4().hex}',
        message=message,
        description=f'Tip to @{recipient.username}',
        recipient=recipient,
        tipper_wallet=sender_wallet,
        wallet_address=recipient.deposit_wallet_address or '',
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        metadata={'transactionType': 'tip', 'clientInfo': _client_info(request)},
    )


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([GlobalRateThrottle, FinancialRateThrottle])
def submit_tip(request):
    """
    Record a tip the supporter already sent on Solana.

    The transaction is looked up with a short retry loop because a freshly
    confirmed signature may not be queryable yet. Failed transactions and
    already recorded signatures are rejected.
    """
    serializer = TipSubmitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    signature = data['txSignature']

    recipient = get_recipient_or_404(data['recipientUsername'])

    if Transaction.objects.filter(tx_signature=signature).exists():
        raise ApiError('This transaction has already been recorded', status.HTTP_409_CONFLICT,
                       code='DUPLICATE_TRANSACTION')

    chain_tx = fetch_transaction_with_retry(signature)
    if chain_tx is None:
        raise ApiError(TX_NOT_FOUND_MESSAGE, status.HTTP_404_NOT_FOUND)

    meta = chain_tx.get('meta') or {}
    if meta.get('err'):
        raise ApiError('Transaction failed on the Solana blockchain', status.HTTP_400_BAD_REQUEST,
                       error=meta['err'])

    amount = data['amount']
    fee = calculate_platform_fee(amount)

    try:
        with db_transaction.atomic():
            tip = Transaction.objects.create(
                type='tip',
                status='completed',
                amount=amount,
                currency='USDC',
                fee=fee,
                net_amount=amount - fee,
                tx_signature=signature,
                tx_hash=signature,
                message=data.get('message', ''),
                description=f'Tip to @{recipient.username}',
                recipient=recipient,
                tipper_wallet=data['tipperWallet'],
                wallet_address=data.get('recipientWallet') or recipient.deposit_wallet_address or '',
                block_explorer_url=explorer_url(signature),
                completed_at=timezone.now(),
                ip_address=get_client_ip(request),
                user_agent=get_user_agent(request),
                metadata={
                    'transactionType': 'tip',
                    'solana': {
                        'signature': signature,
                        'mint': settings.USDC_MINT_ADDRESS,
                        'network': get_network(),
                        'slot': chain_tx.get('slot'),
                        'blockTime': chain_tx.get('blockTime'),
                        'confirmationStatus': 'confirmed',
                    },
                    'clientInfo': _client_info(request),
                },
            )
    except IntegrityError:
        raise ApiError('This transaction has already been recorded', status.HTTP_409_CONFLICT,
                       code='DUPLICATE_TRANSACTION')

    logger.info("Recorded tip %s of %s USDC to %s", tip.pk, amount, recipient.username)
    return api_success('Tip submitted successfully', {'transaction': TransactionSerializer(tip).data},
                       status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def tips(request):
    """
    POST: record a pending tip intent.
    GET: every tip on the platform, paginated (tips:manage).
    """
    if request.method == 'POST':
        serializer = TipCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        recipient = get_recipient_or_404(data['recipientUsername'])
        if not recipient.deposit_wallet_address:
            raise ApiError('Recipient has not set up their wallet yet', status.HTTP_400_BAD_REQUEST)

        tip = record_tip_intent(request, recipient, data['amount'], data['senderAddress'], data.get('message', ''))
        return api_success('Tip created successfully', {'tip': TransactionSerializer(tip).data},
                           status.HTTP_201_CREATED)

    if not request.user.creator.has_permission('tips:manage'):
        raise ApiError('You do not have permission to perform this action', status.HTTP_403_FORBIDDEN)

    queryset = Transaction.objects.select_related('recipient').filter(type='tip')
    status_filter = request.query_params.get('status')
    if status_filter:
        queryset = queryset.filter(status=status_filter)
    items, pagination = paginate(queryset, request.query_params)
    return api_success('Tips retrieved successfully', {
        'tips': TransactionSerializer(items, many=True, context={'include_client_info': True}).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def user_tips(request, user_id):
    """Tips received by a user; visible to that user and tip managers."""
    ensure_self_or_permission(request, user_id, 'tips:manage')

    queryset = Transaction.objects.select_related('recipient').filter(type='tip', recipient__user_id=user_id)
    status_filter = request.query_params.get('status')
    if status_filter:
        queryset = queryset.filter(status=status_filter)
    items, pagination = paginate(queryset, request.query_params)
    return api_success('Tips retrieved successfully', {
        'tips': TransactionSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def creator_tips(request, username):
    """Recent completed tips shown on a creator's public page."""
    creator = Creator.objects.filter(username=username.strip().lower(), status='active').first()
    if creator is None:
        raise ApiError('Creator not found', status.HTTP_404_NOT_FOUND)

    limit = parse_int(request.query_params.get('limit'), 10, maximum=50)
    offset = parse_int(request.query_params.get('offset'), 0, minimum=0)
    queryset = creator.transactions.filter(type='tip', status='completed')
    total = queryset.count()
    items = queryset[offset:offset + limit]
    return api_success('Tips retrieved successfully', {
        'tips': PublicTipSerializer(items, many=True).data,
        'pagination': {'total': total, 'limit': limit, 'offset': offset},
    })


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def tip_detail(request, tip_id):
    """GET for the recipient or tip managers; PUT (status) and DELETE for tip managers."""
    tip = Transaction.objects.select_related('recipient').filter(pk=tip_id, type='tip').first()
    if tip is None:
        raise ApiError('Tip not found', status.HTTP_404_NOT_FOUND)

    creator = request.user.creator
    is_manager = creator.has_permission('tips:manage')

    if request.method == 'GET':
        if tip.recipient_id != creator.pk and not is_manager:
            raise ApiError('You do not have permission to view this tip', status.HTTP_403_FORBIDDEN)
        return api_success('Tip retrieved successfully', {
            'tip': TransactionSerializer(tip, context={'include_client_info': is_manager}).data,
        })

    if not is_manager:
        raise ApiError('You do not have permission to perform this action', status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        tip.delete()
        logger.info("Tip %s deleted by %s", tip_id, request.user.pk)
        return api_success('Tip deleted successfully')

    serializer = TransactionStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    tip.status = serializer.validated_data['status']
    if serializer.validated_data.get('txHash'):
        tip.tx_hash = serializer.validated_data['txHash']
    if tip.status == 'completed' and tip.completed_at is None:
        tip.completed_at = timezone.now()
    tip.save()
    return api_success('Tip status updated successfully', {
        'tip': TransactionSerializer(tip, context={'include_client_info': True}).data,
    })
