"""Tests for MCP protocol layer - tools/resources registration and response format."""

import json

import pytest
from conftest import LUMBAR_POINTS

# Import the server module to test tool/resource registration
from spinealign_mcp.server import mcp
from spinealign_mcp.tools import ValidationError


class TestMCPToolsDiscovery:
    """Test MCP tools are properly registered and discoverable."""

    def test_server_has_tools_registered(self):
        """Verify tools are registered with the MCP server."""
        # FastMCP stores tools in _tool_manager
        assert hasattr(mcp, "_tool_manager") or hasattr(mcp, "tools")

    def test_server_name(self):
        """The server advertises its name."""
        assert mcp.name == "spinealign"

    @pytest.mark.parametrize(
        "name",
        ["list_landmarks", "measure_landmarks", "compute_correction_targets", "simulate_correction"],
    )
    def test_tool_exists(self, name):
        """Verify each tool function is exposed by the server module."""
        from spinealign_mcp import server

        assert callable(getattr(server, name))


class TestMCPResourcesDiscovery:
    """Test MCP resources are properly registered and discoverable."""

    def test_cervical_landmarks_resource_exists(self):
        """Verify spinealign://landmarks/cervical resource is registered."""
        from spinealign_mcp.server import get_cervical_landmarks

        assert callable(get_cervical_landmarks)

    def test_lumbar_landmarks_resource_exists(self):
        """Verify spinealign://landmarks/lumbar resource is registered."""
        from spinealign_mcp.server import get_lumbar_landmarks

        assert callable(get_lumbar_landmarks)

    def test_normative_table_resource_exists(self):
        """Verify spinealign://normative-table resource is registered."""
        from spinealign_mcp.server import get_normative_table

        assert callable(get_normative_table)


class TestToolParameterValidation:
    """Test tool parameter validation through the server layer."""

    def test_list_landmarks_validates_region(self):
        """list_landmarks should reject unknown regions."""
        from spinealign_mcp.server import list_landmarks

        with pytest.raises(ValidationError) as exc_info:
            list_landmarks("thoracic")
        assert exc_info.value.field == "region"

    def test_measure_landmarks_validates_landmarks(self):
        """measure_landmarks should reject malformed coordinates."""
        from spinealign_mcp.server import measure_landmarks

        with pytest.raises(ValidationError):
            measure_landmarks("lumbar", [["a", 1]])

    def test_simulate_correction_validates_calibration(self):
        """simulate_correction should reject a non-positive calibration."""
        from spinealign_mcp.server import simulate_correction

        with pytest.raises(ValidationError) as exc_info:
            simulate_correction("lumbar", 50, [], pixels_per_mm=0)
        assert exc_info.value.field == "pixels_per_mm"


class TestToolResponseFormat:
    """Test tool responses keep their documented shape."""

    def test_measure_landmarks_response_format(self):
        """measure_landmarks response has the documented keys."""
        from spinealign_mcp.server import measure_landmarks

        result = measure_landmarks("lumbar", [[p.x, p.y] for p in LUMBAR_POINTS])
        assert set(result) == {
            "success",
            "region",
            "results",
            "unrounded",
            "distance_unit",
            "overrides",
            "landmark_status",
        }

    def test_compute_correction_targets_response_format(self):
        """Each parameter carries the ClinicalParameter fields."""
        from spinealign_mcp.server import compute_correction_targets

        result = compute_correction_targets("lumbar", 50, [[p.x, p.y] for p in LUMBAR_POINTS])
        for param in result["parameters"]:
            assert set(param) == {
                "id",
                "label",
                "current",
                "unit",
                "target",
                "target_val",
                "correction",
                "severity",
                "explanation",
            }

    def test_simulate_correction_response_format(self):
        """simulate_correction returns both landmark layouts and a disclaimer."""
        from spinealign_mcp.server import simulate_correction

        result = simulate_correction("lumbar", 50, [[p.x, p.y] for p in LUMBAR_POINTS])
        assert result["success"] is True
        assert len(result["corrected_landmarks"]) == len(result["original_landmarks"]) == 8
        assert set(result["corrected_landmarks"][0]) == {"id", "x", "y"}
        assert "not a biomechanical prediction" in result["disclaimer"]


class TestResourceResponseFormat:
    """Test resource responses are valid JSON."""

    def test_landmark_resources_are_json(self):
        """Catalog resources return JSON documents."""
        from spinealign_mcp.server import get_cervical_landmarks, get_lumbar_landmarks

        assert json.loads(get_cervical_landmarks())["count"] == 10
        assert json.loads(get_lumbar_landmarks())["count"] == 8

    def test_normative_table_is_json(self):
        """Normative table resource returns a JSON document."""
        from spinealign_mcp.server import get_normative_table

        assert "severity_thresholds" in json.loads(get_normative_table())
