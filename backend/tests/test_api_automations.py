"""Integration tests for Automation API endpoints."""

from uuid import uuid4

import pytest
from fastapi import status
from httpx import AsyncClient


def graph_json(graph) -> dict:
    return graph.model_dump(mode="json", by_alias=True)


@pytest.fixture
def save_automation(async_client: AsyncClient, project_id, urgent_graph):
    """POST a graph to the project and return the response body."""

    async def _save(graph=None, **fields) -> dict:
        response = await async_client.post(
            f"/api/v1/projects/{project_id}/automations",
            json={
                "name": "Auto-assign urgent",
                "graph": graph_json(graph or urgent_graph),
                **fields,
            },
        )
        assert response.status_code == status.HTTP_201_CREATED, response.text
        return response.json()

    return _save


# =============================================================================
# Project Endpoint Tests
# =============================================================================


class TestProjectEndpoints:
    """Editor load, save and event intake."""

    @pytest.mark.asyncio
    async def test_editor_empty_project(self, async_client: AsyncClient, project_id):
        """Test the editor of an empty project returns the default graph."""
        response = await async_client.get(f"/api/v1/projects/{project_id}/automations/editor")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["automations"] == []
        assert data["automation"] is None
        assert [node["kind"] for node in data["graph"]["nodes"]] == ["trigger"]

    @pytest.mark.asyncio
    async def test_save_automation(self, save_automation):
        """Test saving a graph creates the automation and version 1."""
        data = await save_automation(version_notes="first cut")

        assert data["automation"]["name"] == "Auto-assign urgent"
        assert data["automation"]["current_version_id"] == data["version"]["id"]
        assert data["version"]["version_number"] == 1
        assert data["version"]["notes"] == "first cut"
        assert data["warnings"] == []

    @pytest.mark.asyncio
    async def test_save_cyclic_graph(
        self, async_client: AsyncClient, project_id, make_trigger, make_action, make_graph
    ):
        """Test a cycle is rejected with its code and the re-entered node."""
        graph = make_graph(
            [make_trigger(), make_action("a")],
            ("trigger", "a"),
            ("a", "trigger"),
        )

        response = await async_client.post(
            f"/api/v1/projects/{project_id}/automations",
            json={"name": "Loop", "graph": graph_json(graph)},
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        detail = response.json()["detail"]
        assert detail["code"] == "CYCLE_DETECTED"
        assert detail["node_id"] == "trigger"
        assert detail["details"]["cycle_path"] == ["trigger", "a", "trigger"]

    @pytest.mark.asyncio
    async def test_save_without_trigger(
        self, async_client: AsyncClient, project_id, make_action, make_graph
    ):
        """Test a graph without trigger is rejected."""
        graph = make_graph([make_action("a")])

        response = await async_client.post(
            f"/api/v1/projects/{project_id}/automations",
            json={"name": "Headless", "graph": graph_json(graph)},
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["detail"]["code"] == "MISSING_OR_MULTIPLE_TRIGGER"

    @pytest.mark.asyncio
    async def test_editor_after_save(self, async_client: AsyncClient, project_id, save_automation):
        """Test the editor shows the saved automation and its versions."""
        saved = await save_automation()

        response = await async_client.get(f"/api/v1/projects/{project_id}/automations/editor")

        data = response.json()
        assert data["automation"]["id"] == saved["automation"]["id"]
        assert [v["version_number"] for v in data["versions"]] == [1]
        assert data["validation"]["is_valid"] is True
        assert data["run_history"] == []

    @pytest.mark.asyncio
    async def test_dispatch_event(
        self, async_client: AsyncClient, project_id, save_automation, urgent_event
    ):
        """Test an event runs matching automations and returns their executions."""
        saved = await save_automation()

        response = await async_client.post(
            f"/api/v1/projects/{project_id}/events",
            json={"event": urgent_event.to_payload()},
        )

        assert response.status_code == status.HTTP_200_OK
        [execution] = response.json()["executions"]
        assert execution["automation_id"] == saved["automation"]["id"]
        assert execution["status"] == "completed"
        assert [log["sequence"] for log in execution["logs"]] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_dispatch_with_causation_chain(
        self, async_client: AsyncClient, project_id, save_automation, urgent_event
    ):
        """Test an event caused by the automation itself trips the loop guard."""
        saved = await save_automation()

        response = await async_client.post(
            f"/api/v1/projects/{project_id}/events",
            json={
                "event": urgent_event.to_payload(),
                "causation_chain": [saved["automation"]["id"]],
            },
        )

        [execution] = response.json()["executions"]
        assert execution["success"] is False
        assert execution["error_code"] == "CYCLE_GUARD_TRIGGERED"


# =============================================================================
# Automation Endpoint Tests
# =============================================================================


class TestAutomationEndpoints:
    """Validation, lookup, activation and deletion."""

    @pytest.mark.asyncio
    async def test_validate_graph(self, async_client: AsyncClient, urgent_graph):
        """Test validation returns the execution levels."""
        response = await async_client.post(
            "/api/v1/automations/validate", json={"graph": graph_json(urgent_graph)}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["is_valid"] is True
        assert data["errors"] == []
        assert data["execution_order"] == [["trigger"], ["not-done"], ["assign", "notify"]]

    @pytest.mark.asyncio
    async def test_validate_reports_dangling_edge(
        self, async_client: AsyncClient, make_trigger, make_graph
    ):
        """Test invalid graphs are reported, not rejected."""
        graph = make_graph([make_trigger()], ("trigger", "ghost"))

        response = await async_client.post(
            "/api/v1/automations/validate", json={"graph": graph_json(graph)}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["is_valid"] is False
        assert [e["code"] for e in data["errors"]] == ["DANGLING_EDGE"]

    @pytest.mark.asyncio
    async def test_get_automation_not_found(self, async_client: AsyncClient):
        """Test an unknown automation returns 404 with an error body."""
        response = await async_client.get(f"/api/v1/automations/{uuid4()}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert "message" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_set_active(self, async_client: AsyncClient, save_automation):
        """Test an automation can be switched off."""
        saved = await save_automation()
        automation_id = saved["automation"]["id"]

        response = await async_client.post(
            f"/api/v1/automations/{automation_id}/active", json={"is_active": False}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_active"] is False

    @pytest.mark.asyncio
    async def test_delete_automation(self, async_client: AsyncClient, save_automation):
        """Test deleted automations are no longer found."""
        saved = await save_automation()
        automation_id = saved["automation"]["id"]

        response = await async_client.delete(f"/api/v1/automations/{automation_id}")
        assert response.status_code == status.HTTP_204_NO_CONTENT

        response = await async_client.get(f"/api/v1/automations/{automation_id}")
        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Version Endpoint Tests
# =============================================================================


class TestVersionEndpoints:
    """Version listing, toggling and promotion."""

    @pytest.mark.asyncio
    async def test_list_versions_newest_first(self, async_client: AsyncClient, save_automation):
        """Test versions are listed newest first."""
        first = await save_automation()
        automation_id = first["automation"]["id"]
        await save_automation(automation_id=automation_id)

        response = await async_client.get(f"/api/v1/automations/{automation_id}/versions")

        assert response.status_code == status.HTTP_200_OK
        assert [v["version_number"] for v in response.json()] == [2, 1]

    @pytest.mark.asyncio
    async def test_get_version_includes_definition(
        self, async_client: AsyncClient, save_automation
    ):
        """Test a version is returned with its graph."""
        saved = await save_automation()

        response = await async_client.get(f"/api/v1/automations/versions/{saved['version']['id']}")

        assert response.status_code == status.HTTP_200_OK
        node_ids = [node["id"] for node in response.json()["definition"]["nodes"]]
        assert node_ids == ["trigger", "not-done", "assign", "notify"]

    @pytest.mark.asyncio
    async def test_disabled_version_cannot_be_promoted(
        self, async_client: AsyncClient, save_automation
    ):
        """Test promoting a disabled version returns 409."""
        first = await save_automation()
        version_id = first["version"]["id"]
        await save_automation(automation_id=first["automation"]["id"])

        response = await async_client.patch(
            f"/api/v1/automations/versions/{version_id}", json={"is_enabled": False}
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_enabled"] is False

        response = await async_client.post(f"/api/v1/automations/versions/{version_id}/promote")
        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"]["code"] == "VERSION_DISABLED"

    @pytest.mark.asyncio
    async def test_promote_rolls_back(self, async_client: AsyncClient, save_automation):
        """Test an older version can be made current again."""
        first = await save_automation()
        await save_automation(automation_id=first["automation"]["id"])

        response = await async_client.post(
            f"/api/v1/automations/versions/{first['version']['id']}/promote"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["current_version_id"] == first["version"]["id"]


# =============================================================================
# Dry Run and History Endpoint Tests
# =============================================================================


class TestDryRunEndpoints:
    """Simulation and run history."""

    @pytest.mark.asyncio
    async def test_dry_run_with_built_sample(self, async_client: AsyncClient, save_automation):
        """Test a dry run without body simulates a generated sample."""
        saved = await save_automation()
        automation_id = saved["automation"]["id"]

        response = await async_client.post(
            f"/api/v1/automations/{automation_id}/dry-run", json={"requested_by": "user-42"}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["matched"] is True
        assert data["execution"]["is_simulation"] is True
        assign = next(log for log in data["execution"]["logs"] if log["node_id"] == "assign")
        assert assign["output"] == {"would_assign": "lead-1"}

    @pytest.mark.asyncio
    async def test_dry_run_without_versions(self, async_client: AsyncClient, automation_factory):
        """Test an automation with nothing saved cannot be simulated."""
        automation = await automation_factory()

        response = await async_client.post(f"/api/v1/automations/{automation.id}/dry-run")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["detail"]["code"] == "NO_ACTIVE_VERSION"

    @pytest.mark.asyncio
    async def test_runs_exclude_dry_runs(
        self, async_client: AsyncClient, project_id, save_automation, urgent_event
    ):
        """Test run history lists real runs only, dry runs are listed apart."""
        saved = await save_automation()
        automation_id = saved["automation"]["id"]
        await async_client.post(
            f"/api/v1/projects/{project_id}/events", json={"event": urgent_event.to_payload()}
        )
        await async_client.post(
            f"/api/v1/automations/{automation_id}/dry-run", json={"requested_by": "user-42"}
        )

        runs = await async_client.get(f"/api/v1/automations/{automation_id}/runs")
        simulations = await async_client.get(
            f"/api/v1/automations/{automation_id}/simulations",
            params={"requested_by": "user-42"},
        )

        assert [run["is_simulation"] for run in runs.json()] == [False]
        assert [run["is_simulation"] for run in simulations.json()] == [True]

    @pytest.mark.asyncio
    async def test_runs_limit_validation(self, async_client: AsyncClient, save_automation):
        """Test the run limit is bounded."""
        saved = await save_automation()

        response = await async_client.get(
            f"/api/v1/automations/{saved['automation']['id']}/runs", params={"limit": 0}
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
