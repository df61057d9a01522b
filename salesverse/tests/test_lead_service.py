"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Cycle de vie des leads                                     ║
║                                                                              ║
║  1. Création : statut initial, historique, audit CREATE                      ║
║  2. Validation des agents exhaustive (tous les ids invalides listés)         ║
║  3. Mise à jour : statut recalculé, historique append-only, audit complet    ║
║  4. Réaffectation, soft delete, écriture concurrente                         ║
║  5. Import en masse                                                          ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import pytest
from pydantic import ValidationError as SchemaError

from salesverse.config import new_id
from salesverse.errors import ConflictError, NotFoundError, ValidationError
from salesverse.models.lead import LeadCreate, LeadOwnershipChange, LeadUpdate
from salesverse.tests.conftest import make_lead_payload


async def audit_entries(db, lead_id, **query):
    return await db.lead_history.find({"lead_id": lead_id, **query}, {"_id": 0}).to_list(None)


class TestCreateLead:

    @pytest.mark.asyncio
    async def test_new_lead_is_open_with_single_history_record(self, lead, db):
        assert lead["current_lead_status"]["name"] == "Open"
        assert len(lead["lead_status_history"]) == 1
        assert lead["lead_status_history"][0]["id"] == lead["current_lead_status"]["id"]
        assert lead["version"] == 1

        entries = await audit_entries(db, lead["id"])
        assert {e["change_type"] for e in entries} == {"CREATE"}
        assert len({e["batch_id"] for e in entries}) == 1
        assert all(e["old_value"] is None for e in entries)
        assert {"first_name", "email_address", "current_lead_status"} <= {e["field"] for e in entries}

    @pytest.mark.asyncio
    async def test_actor_references_resolved(self, lead, agents):
        assert lead["allocated_to"]["id"] == agents["owner"]["id"]
        assert lead["allocated_to"]["agent_code"] == agents["owner"]["agent_code"]
        assert lead["created_by"]["first_name"] == "Manager"

    @pytest.mark.asyncio
    async def test_initial_status_derived_from_submitted_fields(self, services, agents):
        created = await services.leads.create(LeadCreate(**make_lead_payload(
            agents["manager"]["id"], agents["owner"]["id"],
            lead_progress="Follow Up", lead_disposition="Wrong Number",
        )))
        assert created["current_lead_status"]["name"] == "Discarded"

    @pytest.mark.asyncio
    async def test_every_invalid_actor_reported(self, services, db):
        invalid = [new_id(), new_id(), new_id()]
        payload = make_lead_payload(invalid[0], invalid[1], allocator=invalid[2])

        with pytest.raises(ValidationError) as exc:
            await services.leads.create(LeadCreate(**payload))

        for agent_id in invalid:
            assert agent_id in exc.value.message
        assert sorted(exc.value.details) == sorted(invalid)
        assert await db.leads.count_documents({}) == 0
        assert await db.lead_history.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_inactive_and_deleted_agents_are_invalid(self, services, agents, inactive_agent):
        await services.agents.delete_agent(agents["other"]["id"])
        payload = make_lead_payload(agents["manager"]["id"], inactive_agent["id"], allocator=agents["other"]["id"])

        with pytest.raises(ValidationError) as exc:
            await services.leads.create(LeadCreate(**payload))

        assert exc.value.details == [inactive_agent["id"], agents["other"]["id"]]
        assert agents["manager"]["id"] not in exc.value.message

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, services, agents, lead):
        payload = make_lead_payload(agents["manager"]["id"], agents["owner"]["id"],
                                    email_address=lead["email_address"])
        with pytest.raises(ConflictError):
            await services.leads.create(LeadCreate(**payload))


class TestUpdateLead:

    @pytest.mark.asyncio
    async def test_end_to_end_conversion(self, services, lead, db, agents):
        updated = await services.leads.update(lead["id"], LeadUpdate(
            lead_progress="Documentation",
            lead_disposition="Interested",
            lead_sub_disposition="Ready to Buy",
            updated_by=agents["owner"]["id"],
        ))

        assert updated["current_lead_status"]["name"] == "Converted"
        assert len(updated["lead_status_history"]) == 2
        assert updated["lead_status_history"][0]["name"] == "Open"
        assert updated["lead_status_history"][-1] == updated["current_lead_status"]

        entries = await audit_entries(db, lead["id"], change_type="UPDATE")
        assert len(entries) == 4
        status_entry = next(e for e in entries if e["field"] == "current_lead_status")
        assert status_entry["old_value"] == "Open"
        assert status_entry["new_value"] == "Converted"
        assert all(e["changed_by"] == agents["owner"]["id"] for e in entries)

    @pytest.mark.asyncio
    async def test_audit_matches_pre_and_post_state(self, services, lead, db):
        before = await db.leads.find_one({"id": lead["id"]}, {"_id": 0})

        after = await services.leads.update(lead["id"], LeadUpdate(city="Taguig", zipcode="1630"))

        entries = await audit_entries(db, lead["id"], change_type="UPDATE")
        assert len(entries) == 2
        by_field = {e["field"]: e for e in entries}
        assert by_field["city"]["old_value"] == before["city"]
        assert by_field["city"]["new_value"] == after["city"] == "Taguig"
        assert by_field["zipcode"]["old_value"] is None
        assert by_field["zipcode"]["new_value"] == "1630"
        assert after["current_lead_status"] == before["current_lead_status"]

    @pytest.mark.asyncio
    async def test_history_grows_only_on_status_updates(self, services, lead):
        steps = [
            LeadUpdate(lead_progress="Initial Contact"),
            LeadUpdate(city="Pasig"),
            LeadUpdate(lead_disposition="Not Interested"),
            LeadUpdate(remark_from_user="call back later"),
            LeadUpdate(lead_disposition="Interested", lead_sub_disposition="Needs Time"),
        ]
        expected = 1
        for step in steps:
            previous = await services.leads.get(lead["id"])
            current = await services.leads.update(lead["id"], step)
            if step.model_fields_set & {"lead_progress", "lead_disposition", "lead_sub_disposition"}:
                expected += 1
            assert len(current["lead_status_history"]) == expected
            assert current["lead_status_history"][:len(previous["lead_status_history"])] == \
                previous["lead_status_history"]

    @pytest.mark.asyncio
    async def test_status_uses_merged_view(self, services, lead):
        await services.leads.update(lead["id"], LeadUpdate(lead_progress="Documentation"))
        await services.leads.update(lead["id"], LeadUpdate(lead_disposition="Interested"))
        updated = await services.leads.update(lead["id"], LeadUpdate(lead_sub_disposition="Ready to Buy"))
        assert updated["current_lead_status"]["name"] == "Converted"

    @pytest.mark.asyncio
    async def test_empty_update_rejected(self, services, lead):
        with pytest.raises(ValidationError):
            await services.leads.update(lead["id"], LeadUpdate(updated_by=new_id()))

    @pytest.mark.asyncio
    async def test_unknown_lead(self, services, agents):
        with pytest.raises(NotFoundError):
            await services.leads.update(new_id(), LeadUpdate(city="Cebu"))

    @pytest.mark.asyncio
    async def test_invalid_actor_leaves_lead_untouched(self, services, lead, db):
        with pytest.raises(ValidationError):
            await services.leads.update(lead["id"], LeadUpdate(allocated_to=new_id(), city="Cebu"))

        stored = await db.leads.find_one({"id": lead["id"]}, {"_id": 0})
        assert stored["city"] == "Makati"
        assert stored["version"] == 1

    @pytest.mark.asyncio
    async def test_required_fields_cannot_be_nulled(self, services, lead, db):
        with pytest.raises(SchemaError) as exc:
            LeadUpdate(allocated_to=None, first_name=None, lead_disposition=None)

        [error] = exc.value.errors()
        assert error["msg"].endswith("Fields cannot be null: first_name, allocated_to")

        stored = await db.leads.find_one({"id": lead["id"]}, {"_id": 0})
        assert stored["allocated_to"] == lead["allocated_to"]["id"]

    @pytest.mark.asyncio
    async def test_optional_status_fields_can_be_cleared(self, services, lead):
        await services.leads.update(lead["id"], LeadUpdate(lead_progress="Follow Up", lead_disposition="Wrong Number"))

        updated = await services.leads.update(lead["id"], LeadUpdate(lead_disposition=None))

        assert updated["lead_disposition"] is None
        assert updated["current_lead_status"]["name"] == "Open"

    @pytest.mark.asyncio
    async def test_reallocation_through_update_audits_allocated_at(self, services, lead, agents, db):
        before = await db.leads.find_one({"id": lead["id"]}, {"_id": 0})

        await services.leads.update(lead["id"], LeadUpdate(allocated_to=agents["other"]["id"]))

        after = await db.leads.find_one({"id": lead["id"]}, {"_id": 0})
        entries = {e["field"]: e for e in await audit_entries(db, lead["id"], change_type="UPDATE")}
        assert sorted(entries) == ["allocated_at", "allocated_to"]
        assert entries["allocated_at"]["old_value"] == before["allocated_at"]
        assert entries["allocated_at"]["new_value"] == after["allocated_at"]
        assert after["allocated_at"] != before["allocated_at"]

    @pytest.mark.asyncio
    async def test_update_cannot_collide_with_another_lead(self, services, lead, agents):
        other = await services.leads.create(LeadCreate(**make_lead_payload(
            agents["manager"]["id"], agents["other"]["id"],
        )))

        with pytest.raises(ConflictError):
            await services.leads.update(other["id"], LeadUpdate(email_address=lead["email_address"]))
        with pytest.raises(ConflictError):
            await services.leads.update(other["id"], LeadUpdate(primary_number=lead["primary_number"]))

        same = await services.leads.update(other["id"], LeadUpdate(
            email_address=other["email_address"], city="Pasig",
        ))
        assert same["city"] == "Pasig"

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self, services, lead, db):
        stale = await db.leads.find_one({"id": lead["id"]}, {"_id": 0})
        await services.leads.update(lead["id"], LeadUpdate(city="Pasig"))

        with pytest.raises(ConflictError):
            await services.leads._write(stale, {"$set": {"city": "Cebu"}})

        stored = await db.leads.find_one({"id": lead["id"]}, {"_id": 0})
        assert stored["city"] == "Pasig"

    @pytest.mark.asyncio
    async def test_write_on_deleted_lead_is_not_found(self, services, lead, db):
        stale = await db.leads.find_one({"id": lead["id"]}, {"_id": 0})
        await services.leads.delete(lead["id"])

        with pytest.raises(NotFoundError):
            await services.leads._write(stale, {"$set": {"city": "Cebu"}})


class TestOwnershipAndDelete:

    @pytest.mark.asyncio
    async def test_change_ownership_records_three_fields(self, services, lead, agents, db):
        before = await db.leads.find_one({"id": lead["id"]}, {"_id": 0})

        updated = await services.leads.change_ownership(lead["id"], LeadOwnershipChange(
            allocated_to=agents["other"]["id"], allocated_by=agents["owner"]["id"],
        ))

        assert updated["allocated_to"]["id"] == agents["other"]["id"]
        assert updated["allocated_by"]["id"] == agents["owner"]["id"]

        entries = await audit_entries(db, lead["id"], change_type="UPDATE")
        assert sorted(e["field"] for e in entries) == ["allocated_at", "allocated_by", "allocated_to"]
        assert all(e["changed_by"] == agents["owner"]["id"] for e in entries)
        allocated_at = next(e for e in entries if e["field"] == "allocated_at")
        assert allocated_at["old_value"] == before["allocated_at"]

    @pytest.mark.asyncio
    async def test_change_ownership_validates_both_actors(self, services, lead):
        bad = [new_id(), new_id()]
        with pytest.raises(ValidationError) as exc:
            await services.leads.change_ownership(lead["id"], LeadOwnershipChange(
                allocated_to=bad[0], allocated_by=bad[1],
            ))
        assert exc.value.details == bad

    @pytest.mark.asyncio
    async def test_soft_delete(self, services, lead, db, agents):
        await services.leads.delete(lead["id"], agents["manager"]["id"])

        with pytest.raises(NotFoundError):
            await services.leads.get(lead["id"])

        stored = await db.leads.find_one({"id": lead["id"]}, {"_id": 0})
        assert stored["is_deleted"] is True
        assert stored["deleted_at"]

        deletes = await audit_entries(db, lead["id"], change_type="DELETE")
        assert len(deletes) == 1
        assert deletes[0]["field"] == "is_deleted"

    @pytest.mark.asyncio
    async def test_deleted_lead_frees_email(self, services, lead, agents):
        await services.leads.delete(lead["id"])
        again = await services.leads.create(LeadCreate(**make_lead_payload(
            agents["manager"]["id"], agents["owner"]["id"], email_address=lead["email_address"],
        )))
        assert again["id"] != lead["id"]


class TestQueries:

    @pytest.mark.asyncio
    async def test_filter_by_status_and_owner(self, services, agents, lead):
        await services.leads.create(LeadCreate(**make_lead_payload(
            agents["manager"]["id"], agents["other"]["id"],
            lead_progress="Negotiation", lead_disposition="Cannot Afford",
        )))

        failed = await services.leads.list_filtered("Failed")
        assert failed["total"] == 1
        assert failed["data"][0]["current_lead_status"]["name"] == "Failed"

        mine = await services.leads.list_filtered("all", agent_id=agents["owner"]["id"])
        assert [l["id"] for l in mine["data"]] == [lead["id"]]

        today = await services.leads.list_filtered("today")
        assert today["total"] == 2

    @pytest.mark.asyncio
    async def test_status_counts(self, services, agents, lead):
        counts = await services.leads.status_counts(agents["owner"]["id"])
        assert counts["Open"] == 1
        assert counts["Converted"] == 0
        assert counts["All"] == 1
        assert counts["For Today"] == 1

    @pytest.mark.asyncio
    async def test_history_resolves_actor(self, services, lead, agents):
        history = await services.leads.history(lead["id"], limit=50)
        assert history["total"] == len(history["data"])
        assert history["data"][0]["changed_by"]["id"] == agents["manager"]["id"]


class TestBulkCreate:

    @pytest.mark.asyncio
    async def test_one_bad_row_does_not_abort_batch(self, services, agents, project):
        good = make_lead_payload(agents["manager"]["id"], agents["owner"]["id"])
        bad_email = make_lead_payload(agents["manager"]["id"], agents["owner"]["id"], email_address="nope")
        bad_actor = make_lead_payload(agents["manager"]["id"], new_id())
        duplicate = make_lead_payload(agents["manager"]["id"], agents["owner"]["id"],
                                      email_address=good["email_address"])
        another = make_lead_payload(agents["manager"]["id"], agents["other"]["id"])

        result = await services.leads.bulk_create([good, bad_email, bad_actor, duplicate, another], project["id"])

        assert result["total_processed"] == 5
        assert result["success_count"] == 2
        assert result["failure_count"] == 3
        assert [e["row"] for e in result["errors"]] == [2, 3, 4]
        assert result["errors"][0]["field"] == "email_address"
        assert "Agents not found or inactive" in result["errors"][1]["error"]
        assert result["errors"][2]["error"] == "Lead already exists"

        created = await services.leads.get(result["created_leads"][0]["lead_id"])
        assert created["project_id"] == project["id"]


class TestAuditFailure:

    @pytest.mark.asyncio
    async def test_update_fails_when_history_cannot_be_written(self, services, lead, monkeypatch):
        async def broken(documents):
            raise RuntimeError("history store unavailable")

        monkeypatch.setattr(services.leads.audit.collection, "insert_many", broken)

        with pytest.raises(RuntimeError):
            await services.leads.update(lead["id"], LeadUpdate(city="Pasig"))

    @pytest.mark.asyncio
    async def test_create_fails_when_history_cannot_be_written(self, services, agents, monkeypatch):
        async def broken(documents):
            raise RuntimeError("history store unavailable")

        monkeypatch.setattr(services.leads.audit.collection, "insert_many", broken)

        with pytest.raises(RuntimeError):
            await services.leads.create(LeadCreate(**make_lead_payload(
                agents["manager"]["id"], agents["owner"]["id"],
            )))
