"""
Initialization - Services Module.

Builds the service graph from settings: one chain client, one query
context shared by the query engine, the orchestrators and the watcher.
"""

from dataclasses import dataclass

from loguru import logger

from cundina.config.database import create_session_factory
from cundina.config.settings import Settings
from cundina.services.blockchain.chain_client import ChainClient
from cundina.services.blockchain.contract_reads import ContractReader
from cundina.services.membership.advance_cashout import AdvanceCashoutOrchestrator
from cundina.services.membership.referral import ReferralService
from cundina.services.membership.registration import RegistrationOrchestrator
from cundina.services.membership.token_approval import TokenApprovalManager
from cundina.services.notification import NotificationService
from cundina.services.ranking.claimed import ClaimedScanner
from cundina.services.ranking.context import QueryContext
from cundina.services.ranking.event_watcher import RankingEventWatcher
from cundina.services.ranking.graph_client import GraphClient
from cundina.services.ranking.indexer_source import IndexerGroupSource
from cundina.services.ranking.ledger_source import LedgerGroupSource
from cundina.services.ranking.query_engine import DualSourceQueryEngine


@dataclass
class Services:
    """Wired service instances."""

    chain: ChainClient
    reader: ContractReader
    context: QueryContext
    graph: GraphClient
    queries: DualSourceQueryEngine
    referrals: ReferralService
    registration: RegistrationOrchestrator
    settlement: AdvanceCashoutOrchestrator
    watcher: RankingEventWatcher
    notifications: NotificationService

    async def close(self) -> None:
        await self.watcher.stop()
        await self.graph.close()
        await self.chain.close()


def validate_environment(settings: Settings) -> None:
    """Warn about settings that limit what the services can do."""
    if settings.read_only:
        logger.warning(
            "ACCOUNT_PRIVATE_KEY is not configured. "
            "Rankings work, membership operations will be rejected."
        )
    if not settings.database_url:
        logger.info("DATABASE_URL not set, notifications disabled")


def build_services(settings: Settings) -> Services:
    """Initialize all services."""
    validate_environment(settings)

    chain = ChainClient(
        rpc_url=settings.rpc_url,
        chain_id=settings.chain_id,
        private_key=settings.account_private_key,
        max_gas_price_gwei=settings.max_gas_price_gwei,
    )
    reader = ContractReader(chain, settings.registry_address, settings.token_address)
    context = QueryContext()
    notifications = NotificationService(create_session_factory(settings))

    graph = GraphClient(
        endpoint=settings.graph_endpoint,
        cooldown=context.cooldown,
        api_key=settings.subgraph_api_key,
        use_proxy=settings.subgraph_use_proxy,
    )
    queries = DualSourceQueryEngine(
        indexer=IndexerGroupSource(graph),
        ledger=LedgerGroupSource(chain, reader),
        claimed=ClaimedScanner(chain, settings.payout_module_address, context),
        context=context,
    )

    referrals = ReferralService(reader, settings.invite_base_url)
    registration = RegistrationOrchestrator(
        chain=chain,
        reader=reader,
        approvals=TokenApprovalManager(chain, reader),
        referrals=referrals,
        payout_module_address=settings.payout_module_address,
        context=context,
        notifications=notifications,
    )
    settlement = AdvanceCashoutOrchestrator(
        chain=chain,
        reader=reader,
        payout_module_address=settings.payout_module_address,
        context=context,
        notifications=notifications,
    )
    watcher = RankingEventWatcher(chain, settings.registry_address, context)

    logger.info("Services initialized")
    return Services(
        chain=chain,
        reader=reader,
        context=context,
        graph=graph,
        queries=queries,
        referrals=referrals,
        registration=registration,
        settlement=settlement,
        watcher=watcher,
        notifications=notifications,
    )
