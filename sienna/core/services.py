"""Service container and factory. Centralizes component initialization."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from sienna.config import Config, load_config
from sienna.core.catalog import BotInstructions, ProductCatalog, Testimonials
from sienna.core.concerns import HairConcerns
from sienna.core.conversations import Conversations, Corrections
from sienna.core.customers import Customers, HairProfiles
from sienna.core.dashboard import DashboardMetrics
from sienna.core.engagement import EngagementStats
from sienna.core.health import SystemHealth
from sienna.core.intelligence import ConversationIntelligence, UserJourney
from sienna.core.models import ModelAnalytics
from sienna.core.stats import init_identity_stats, init_llm_stats, init_storage_stats
from sienna.core.team import TeamMembers
from sienna.core.training import MediaProcessor, TrainingTasks
from sienna.integrations.interface import IdentityProvider, ObjectStore
from sienna.llm.interface import LLMInterface
from sienna.storage.database import Database

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Holds all initialized dashboard components."""

    config: Config
    db: Database
    llm: LLMInterface | None
    store: ObjectStore | None
    identity: IdentityProvider | None
    dashboard: DashboardMetrics
    models: ModelAnalytics
    intelligence: ConversationIntelligence
    journey: UserJourney
    concerns: HairConcerns
    engagement: EngagementStats
    health: SystemHealth
    products: ProductCatalog
    testimonials: Testimonials
    instructions: BotInstructions
    conversations: Conversations
    corrections: Corrections
    customers: Customers
    profiles: HairProfiles
    training: TrainingTasks
    media: MediaProcessor
    team: TeamMembers


def _build_llm(config: Config) -> LLMInterface | None:
    from sienna.llm import get_llm
    try:
        llm = get_llm(config.llm)
    except ValueError:
        logger.warning("LLM backend unavailable, image analysis disabled", exc_info=True)
        return None
    init_llm_stats(config.llm.backend, llm.get_model_name())
    logger.info("LLM enabled: %s (%s)", config.llm.backend, llm.get_model_name())
    return llm


def _build_store(config: Config) -> ObjectStore | None:
    if not config.storage.bucket:
        logger.info("Object storage not configured, uploads disabled")
        return None
    from sienna.integrations.s3 import S3ObjectStore
    store = S3ObjectStore(config.storage)
    init_storage_stats("s3")
    return store


def _build_identity(config: Config) -> IdentityProvider | None:
    if not config.identity.secret_key:
        logger.info("Identity provider not configured, team management disabled")
        return None
    from sienna.integrations.clerk import ClerkClient
    client = ClerkClient(config.identity)
    init_identity_stats("clerk")
    return client


def create_services(
    config: Config | None = None,
    db: Database | None = None,
    *,
    llm: LLMInterface | None = None,
    store: ObjectStore | None = None,
    identity: IdentityProvider | None = None,
    rng: random.Random | None = None,
) -> Services:
    """Build all dashboard services from config.

    Args:
        config: Configuration to use. Loads from env if None.
        db: Pre-connected database. Creates new one if None.
        llm, store, identity: Pre-built collaborators. Built from config
            when None; left as None when their settings are absent.
        rng: Random source for synthetic fallback figures.
    """
    if config is None:
        config = load_config()

    if db is None:
        db = Database(config.db)

    if llm is None:
        llm = _build_llm(config)
    if store is None:
        store = _build_store(config)
    if identity is None:
        identity = _build_identity(config)

    rng = rng or random.Random()

    return Services(
        config=config,
        db=db,
        llm=llm,
        store=store,
        identity=identity,
        dashboard=DashboardMetrics(db),
        models=ModelAnalytics(db, rng=rng),
        intelligence=ConversationIntelligence(db, rng=rng),
        journey=UserJourney(db),
        concerns=HairConcerns(db),
        engagement=EngagementStats(db),
        health=SystemHealth(db, rng=rng),
        products=ProductCatalog(db),
        testimonials=Testimonials(db),
        instructions=BotInstructions(db),
        conversations=Conversations(db),
        corrections=Corrections(db),
        customers=Customers(db),
        profiles=HairProfiles(db),
        training=TrainingTasks(db),
        media=MediaProcessor(store, llm),
        team=TeamMembers(identity),
    )
