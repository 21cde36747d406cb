"""Pytest fixtures for test suite."""

import pytest
from pathlib import Path

from sqlmodel import Session, create_engine, select
from sqlmodel.pool import StaticPool

from backend.conversation import ConversationOrchestrator
from backend.core.database import init_db
from backend.evaluation import EvaluationBridge
from backend.matcher import IntentMatcher
from backend.providers import ProviderConfig, ProviderGateway, ProviderName
from backend.rules import RuleSetDocument, RuleSetLoader, RulesEngine
from backend.storage import (
    InMemoryConversationStore,
    InMemoryRuleSetStore,
    SqlConversationStore,
    SqlRuleSetStore,
    import_rulesets,
)
from backend.storage.models import RuleRecord
from provider_fakes import FakeLLM


# =============================================================================
# Rules Fixtures
# =============================================================================


@pytest.fixture
def rules_dir() -> Path:
    """Path to the bundled rule sets."""
    return Path(__file__).parent.parent / "backend" / "rules" / "data"


@pytest.fixture
def rule_documents(rules_dir: Path) -> list[RuleSetDocument]:
    return RuleSetLoader(rules_dir).load_directory()


@pytest.fixture
def rules_engine() -> RulesEngine:
    return RulesEngine()


@pytest.fixture
def rule_store(rule_documents) -> InMemoryRuleSetStore:
    """In-memory store holding the bundled rule sets."""
    store = InMemoryRuleSetStore()
    for document in rule_documents:
        store.add_document(document)
    return store


@pytest.fixture
def bridge(rule_store) -> EvaluationBridge:
    return EvaluationBridge(rule_store)


# =============================================================================
# Provider and Conversation Fixtures
# =============================================================================


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def gateway(fake_llm: FakeLLM) -> ProviderGateway:
    config = ProviderConfig(api_keys={ProviderName.GEMINI: "test-key"})
    return ProviderGateway(config, backends={ProviderName.GEMINI: fake_llm})


@pytest.fixture
def matcher(gateway, rule_store) -> IntentMatcher:
    return IntentMatcher(gateway, rule_store)


@pytest.fixture
def conversation_store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def orchestrator(matcher, bridge, conversation_store) -> ConversationOrchestrator:
    return ConversationOrchestrator(matcher, bridge, conversation_store)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(name="db_engine")
def db_engine_fixture():
    """Fresh in-memory SQLite database with all tables."""
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_rule_store(db_engine, rule_documents) -> SqlRuleSetStore:
    import_rulesets(rule_documents, engine=db_engine)
    return SqlRuleSetStore(db_engine)


@pytest.fixture
def sql_conversation_store(db_engine) -> SqlConversationStore:
    return SqlConversationStore(db_engine)


@pytest.fixture
def corrupt_rule(db_engine):
    """Overwrite a stored rule's condition tree with one that no longer parses."""

    def corrupt(key: str) -> None:
        with Session(db_engine) as session:
            record = session.exec(select(RuleRecord).where(RuleRecord.key == key)).one()
            record.conditions = {"type": "all", "checks": "broken"}
            session.add(record)
            session.commit()

    return corrupt
