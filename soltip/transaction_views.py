"""
Soltip Views: transactions, withdrawals and analytics

Creators see the transactions credited to their account, withdraw USDC
from their Circle wallet and get dashboard analytics over the tips they
received. Administrators can list every transaction and correct statuses.

Withdrawals are recorded as ``processing`` when Circle accepts the
transfer. Their final state is pulled from Circle whenever the status
endpoint is asked about a withdrawal that has not finished yet.
"""

import logging
import uuid
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.db import transaction as db_transaction
from django.db.models import Count, Sum
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated

from .circle import CIRCLE_FAILED_STATES, CircleError, get_circle_client
from .models import Transaction
from .permissions import require_permissions, require_roles
from .responses import ApiError, api_success
from .serializers import (
    DateRangeSerializer,
    ProcessTipSerializer,
    TransactionSerializer,
    TransactionStatusSerializer,
    WithdrawalSerializer,
)
from .solana import explorer_url
from .throttles import AdminRateThrottle, ApiRateThrottle, FinancialRateThrottle, GlobalRateThrottle
from .tip_views import get_recipient_or_404, record_tip_intent
from .utils import get_client_ip, get_user_agent, paginate
from .views import _wallet_balance

logger = logging.getLogger(__name__)

ADMIN_ONLY = [IsAuthenticated, require_roles('admin', 'super_admin')]


def _parse_transaction_id(raw):
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ApiError('Invalid transaction ID format', status.HTTP_400_BAD_REQUEST, code='INVALID_ID_FORMAT')


def _get_owned_transaction(request, raw_id):
    """Transaction visible to the requester: its recipient or an administrator."""
    tx = Transaction.objects.select_related('recipient').filter(pk=_parse_transaction_id(raw_id)).first()
    if tx is None:
        raise ApiError('Transaction not found', status.HTTP_404_NOT_FOUND)
    creator = request.user.creator
    if tx.recipient_id != creator.pk and not creator.is_admin:
        raise ApiError('You do not have permission to view this transaction', status.HTTP_403_FORBIDDEN)
    return tx


def _filter_transactions(queryset, params):
    """Apply ``type``, ``status``, ``startDate`` and ``endDate`` query filters."""
    if params.get('type'):
        queryset = queryset.filter(type=params['type'])
    if params.get('status'):
        queryset = queryset.filter(status=params['status'])
    dates = DateRangeSerializer(data={k: params[k] for k in ('startDate', 'endDate') if params.get(k)})
    dates.is_valid(raise_exception=True)
    if dates.validated_data.get('startDate'):
        queryset = queryset.filter(created_at__gte=dates.validated_data['startDate'])
    if dates.validated_data.get('endDate'):
        queryset = queryset.filter(created_at__lte=dates.validated_data['endDate'])
    return queryset


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([GlobalRateThrottle])
def process_tip(request):
    """Record a pending tip from a supporter wallet (no account needed)."""
    serializer = ProcessTipSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    recipient = get_recipient_or_404(data['recipientUsername'])
    tip = record_tip_intent(request, recipient, data['amount'], data['senderWallet'], data.get('message', ''))
    logger.info("Pending tip %s created for %s", tip.pk, recipient.username)
    return api_success('Tip is being processed', {'transaction': TransactionSerializer(tip).data},
                       status.HTTP_201_CREATED)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def transaction_status(request, transaction_id):
    tx = Transaction.objects.filter(pk=_parse_transaction_id(transaction_id)).first()
    if tx is None:
        raise ApiError('Transaction not found', status.HTTP_404_NOT_FOUND)
    return api_success('Transaction status retrieved successfully', {
        'id': tx.pk,
        'type': tx.type,
        'status': tx.status,
        'amount': tx.amount,
        'currency': tx.currency,
        'txHash': tx.tx_hash,
        'blockExplorerUrl': tx.block_explorer_url,
        'createdAt': tx.created_at,
        'completedAt': tx.completed_at,
    })


# ---------------------------------------------------------------------------
# Own transactions
# ---------------------------------------------------------------------------

@api_view(['GET'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def my_transactions(request):
    queryset = Transaction.objects.select_related('recipient').filter(recipient=request.user.creator)
    queryset = _filter_transactions(queryset, request.query_params)
    items, pagination = paginate(queryset, request.query_params)
    return api_success('Transactions retrieved successfully', {
        'transactions': TransactionSerializer(items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def transaction_detail(request, transaction_id):
    tx = _get_owned_transaction(request, transaction_id)
    context = {'include_client_info': request.user.creator.is_admin}
    return api_success('Transaction retrieved successfully', {
        'transaction': TransactionSerializer(tx, context=context).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, require_permissions('wallet:withdraw')])
@throttle_classes([GlobalRateThrottle, FinancialRateThrottle])
def create_withdrawal(request):
    """
    Withdraw USDC from the creator's Circle wallet to a Solana address.

    The withdrawal row and the Circle transfer succeed or fail together:
    if Circle rejects the transfer nothing is recorded.
    """
    serializer = WithdrawalSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    amount = serializer.validated_data['amount']
    address = serializer.validated_data['withdrawalAddress']

    creator = request.user.creator
    if not creator.circle_wallet_id:
        raise ApiError('No wallet found. Please complete onboarding first.', status.HTTP_400_BAD_REQUEST)

    try:
        with db_transaction.atomic():
            withdrawal = Transaction.objects.create(
                type='withdrawal',
                status='processing',
                amount=amount,
                currency='USDC',
                net_amount=amount,
                tx_signature=str(uuid.uuid4()),
                description=f'Withdrawal to {address}',
                recipient=creator,
                wallet_address=address,
                ip_address=get_client_ip(request),
                user_agent=get_user_agent(request),
                metadata={'transactionType': 'withdrawal'},
            )
            circle_tx = get_circle_client().create_withdrawal(creator.circle_wallet_id, address, amount)
            withdrawal.metadata['circle'] = {
                'transactionId': circle_tx['id'],
                'state': circle_tx['state'],
                'destinationAddress': address,
                'amount': str(amount),
            }
            withdrawal.save(update_fields=['metadata', 'updated_at'])
    except CircleError as e:
        logger.error("Withdrawal of %s USDC for user %s failed: %s", amount, request.user.pk, e)
        raise ApiError('Failed to initiate withdrawal. Please try again.', status.HTTP_502_BAD_GATEWAY,
                       code='WITHDRAWAL_FAILED')

    logger.info("Withdrawal %s of %s USDC initiated for user %s", withdrawal.pk, amount, request.user.pk)
    return api_success('Withdrawal initiated successfully', {
        'transaction': TransactionSerializer(withdrawal).data,
    }, status.HTTP_201_CREATED)


def sync_withdrawal(withdrawal):
    """
    Pull the latest Circle state into a withdrawal that is not final yet.

    Returns:
        str: The Circle state, or None if Circle could not be asked
    """
    circle_meta = (withdrawal.metadata or {}).get('circle') or {}
    circle_id = circle_meta.get('transactionId')
    if withdrawal.is_terminal or not circle_id:
        return circle_meta.get('state')

    try:
        circle_tx = get_circle_client().get_transaction(circle_id)
    except CircleError as e:
        logger.warning("Could not refresh withdrawal %s from Circle: %s", withdrawal.pk, e)
        return None

    state = circle_tx['state']
    metadata = dict(withdrawal.metadata)
    metadata['circle'] = {**circle_meta, 'state': state, 'txHash': circle_tx.get('txHash'),
                          'networkFee': circle_tx.get('networkFee'), 'updateDate': circle_tx.get('updateDate')}

    if state == 'COMPLETE':
        withdrawal.status = 'completed'
        withdrawal.completed_at = timezone.now()
        if circle_tx.get('txHash'):
            withdrawal.tx_hash = circle_tx['txHash']
            withdrawal.block_explorer_url = explorer_url(circle_tx['txHash'])
    elif state in CIRCLE_FAILED_STATES:
        withdrawal.status = 'failed'
        metadata['error'] = {
            'code': circle_tx.get('errorCode'),
            'reason': circle_tx.get('failureReason') or f'Circle transaction {state.lower()}',
        }

    withdrawal.metadata = metadata
    withdrawal.save()
    return state


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def withdrawal_status(request, transaction_id):
    withdrawal = _get_owned_transaction(request, transaction_id)
    if withdrawal.type != 'withdrawal':
        raise ApiError('Transaction is not a withdrawal', status.HTTP_400_BAD_REQUEST,
                       code='NOT_WITHDRAWAL_TRANSACTION')

    circle_state = sync_withdrawal(withdrawal)
    return api_success('Withdrawal status retrieved successfully', {
        'transaction': TransactionSerializer(withdrawal).data,
        'circleStatus': circle_state,
    })


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

@api_view(['GET'])
@permission_classes(ADMIN_ONLY)
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def all_transactions(request):
    queryset = Transaction.objects.select_related('recipient')
    user_id = request.query_params.get('userId')
    if user_id:
        queryset = queryset.filter(recipient__user_id=_parse_transaction_id(user_id))
    queryset = _filter_transactions(queryset, request.query_params)
    items, pagination = paginate(queryset, request.query_params)
    return api_success('Transactions retrieved successfully', {
        'transactions': TransactionSerializer(items, many=True, context={'include_client_info': True}).data,
        'pagination': pagination,
    })


@api_view(['PATCH'])
@permission_classes(ADMIN_ONLY)
@throttle_classes([GlobalRateThrottle, AdminRateThrottle])
def update_transaction_status(request, transaction_id):
    tx = Transaction.objects.filter(pk=_parse_transaction_id(transaction_id)).first()
    if tx is None:
        raise ApiError('Transaction not found', status.HTTP_404_NOT_FOUND)

    serializer = TransactionStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    new_status = serializer.validated_data['status']

    tx.status = new_status
    if serializer.validated_data.get('txHash'):
        tx.tx_hash = serializer.validated_data['txHash']
    if new_status == 'completed' and tx.completed_at is None:
        tx.completed_at = timezone.now()
    tx.metadata = {
        **(tx.metadata or {}),
        'lastUpdatedBy': {'userId': request.user.pk, 'at': timezone.now().isoformat()},
    }
    tx.save()
    logger.info("Transaction %s set to %s by %s", tx.pk, new_status, request.user.pk)
    return api_success('Transaction status updated successfully', {
        'transaction': TransactionSerializer(tx, context={'include_client_info': True}).data,
    })


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

def _sum_amount(queryset):
    return queryset.aggregate(total=Sum('amount'))['total'] or Decimal('0')


def _weekly_growth(this_week, last_week):
    if last_week == 0:
        return 100 if this_week > 0 else 0
    return round(float((this_week - last_week) / last_week * 100), 2)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@throttle_classes([GlobalRateThrottle, ApiRateThrottle])
def dashboard_analytics(request):
    """
    Dashboard numbers over completed tips received.

    The range defaults to the 30 days before ``endDate`` (now). Weekly
    growth compares the 7 days ending at ``endDate`` with the 7 before,
    and the volume series has one entry per day for the last 7 days.
    """
    dates = DateRangeSerializer(data={k: request.query_params[k]
                                      for k in ('startDate', 'endDate') if request.query_params.get(k)})
    dates.is_valid(raise_exception=True)
    end = dates.validated_data.get('endDate') or timezone.now()
    start = dates.validated_data.get('startDate') or end - timedelta(days=30)

    creator = request.user.creator
    tips = Transaction.objects.filter(recipient=creator, type='tip', status='completed')
    in_range = tips.filter(created_at__gte=start, created_at__lte=end)

    totals = in_range.aggregate(value=Sum('amount'), count=Count('id'))
    total_value = totals['value'] or Decimal('0')
    total_tips = totals['count']
    avg_value = (total_value / total_tips).quantize(Decimal('0.01')) if total_tips else Decimal('0')

    top = in_range.values('currency').annotate(n=Count('id')).order_by('-n').first()

    this_week = _sum_amount(tips.filter(created_at__gt=end - timedelta(days=7), created_at__lte=end))
    last_week = _sum_amount(tips.filter(created_at__gt=end - timedelta(days=14),
                                        created_at__lte=end - timedelta(days=7)))

    volume = []
    last_day = timezone.localtime(end).date()
    for offset in range(6, -1, -1):
        day = last_day - timedelta(days=offset)
        day_start = timezone.make_aware(datetime.combine(day, time.min))
        day_total = _sum_amount(tips.filter(created_at__gte=day_start,
                                            created_at__lt=day_start + timedelta(days=1)))
        volume.append({'date': day.isoformat(), 'day': day.strftime('%a'), 'value': day_total})

    recent = [
        {
            'id': tip.pk,
            'amount': tip.amount,
            'currency': tip.currency,
            'sender': tip.tipper_wallet or 'Anonymous',
            'message': tip.message,
            'txSignature': tip.tx_signature,
            'date': tip.created_at,
        }
        for tip in in_range.order_by('-created_at')[:5]
    ]

    return api_success('Dashboard analytics retrieved successfully', {
        'totalTips': total_tips,
        'totalValue': total_value,
        'avgTipValue': avg_value,
        'topToken': top['currency'] if top else 'USDC',
        'weeklyGrowth': _weekly_growth(this_week, last_week),
        'balance': _wallet_balance(creator),
        'monthlyVolume': volume,
        'recentTips': recent,
        'dateRange': {'startDate': start, 'endDate': end},
    })
