"""
Fixtures communes : base en mémoire, services, agents / projet / utilisateur de test
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from salesverse.config import new_id
from salesverse.container import build_services
from salesverse.models.agent import AgentCreate, AgentStatus, ProjectCreate
from salesverse.models.lead import LeadCreate
from salesverse.server import create_app
from salesverse.tests.mongo import AsyncDatabase


def make_lead_payload(creator: str, owner: str, allocator: str = None, **overrides) -> dict:
    """Payload LeadCreate valide (email / téléphone uniques)"""
    suffix = new_id()[:8]
    payload = {
        "first_name": "Maria",
        "last_name": "Santos",
        "province": "Metro Manila",
        "city": "Makati",
        "primary_number": f"0917{int(suffix, 16) % 10**7:07d}",
        "email_address": f"maria.{suffix}@example.com",
        "lead_type": "Hot",
        "stage": "Prospect",
        "lead_progress": "New Lead Entry",
        "allocated_to": owner,
        "allocated_by": allocator or creator,
        "created_by": creator,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def db():
    return AsyncDatabase()


@pytest_asyncio.fixture
async def services(db):
    services = build_services(db)
    yield services
    await services.notifier.drain()


@pytest_asyncio.fixture
async def project(services):
    return await services.projects.create_project(
        ProjectCreate(project_name="Insurance Company", project_code="ic")
    )


@pytest_asyncio.fixture
async def project_user(db, project):
    user = {"id": new_id(), "email": "ops@insurance.test", "role": "user", "project_id": project["id"]}
    await db.users.insert_one(dict(user))
    return user


@pytest_asyncio.fixture
async def agents(services, project):
    """Trois agents actifs : manager, owner, other"""
    created = {}
    for index, name in enumerate(("manager", "owner", "other")):
        created[name] = await services.agents.create_agent(AgentCreate(
            first_name=name.title(),
            last_name="Agent",
            email=f"{name}@salesverse.test",
            phone_number=f"0918000000{index}",
            project_id=project["id"],
        ))
    return created


@pytest_asyncio.fixture
async def inactive_agent(services, project):
    return await services.agents.create_agent(AgentCreate(
        first_name="Idle",
        last_name="Agent",
        email="idle@salesverse.test",
        phone_number="09180000099",
        project_id=project["id"],
        agent_status=AgentStatus.INACTIVE,
    ))


@pytest_asyncio.fixture
async def lead(services, agents):
    created = await services.leads.create(LeadCreate(**make_lead_payload(
        agents["manager"]["id"], agents["owner"]["id"]
    )))
    await services.notifier.drain()
    return created


@pytest.fixture
def app(db):
    return create_app(db)


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    await app.state.services.notifier.drain()
