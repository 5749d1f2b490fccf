"""
Integration tests for API endpoints.
"""
import pytest
from io import BytesIO
from fastapi.testclient import TestClient
from main import app
from chartsmith.api.routes import limiter
from chartsmith.core.store import get_dataset_store
import uuid


SALES_CSV = b"Month,Region,Sales\n2024-01-01,North,100\n2024-02-01,South,150\n2024-03-01,East,200\n2024-04-01,North,250"


@pytest.fixture
def client():
    """Create a test client with a fresh rate limit window."""
    limiter.reset()
    return TestClient(app)


def upload(client, content=SALES_CSV, filename="sales.csv", **kwargs):
    return client.post(
        "/api/upload",
        files={"file": (filename, BytesIO(content), "text/csv")},
        **kwargs
    )


@pytest.fixture
def session_id(client):
    response = upload(client)
    assert response.status_code == 200
    return response.json()["session_id"]


@pytest.mark.integration
def test_health_check(client):
    """Test the health check endpoint."""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.integration
def test_root_endpoint(client):
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


@pytest.mark.integration
def test_upload_csv_file(client):
    """Test uploading a valid CSV file."""
    response = upload(client)

    assert response.status_code == 200
    data = response.json()
    assert data["filename"] == "sales.csv"
    assert data["session_id"]
    assert data["schema"]["row_count"] == 4
    assert [c["type"] for c in data["schema"]["columns"]] == ["datetime", "string", "number"]
    assert data["recommendations"][0]["type"] == "line"
    assert len(data["dataset"]) == 4
    assert data["insights"][0]["type"] == "max"


@pytest.mark.integration
def test_upload_replaces_session_dataset(client, session_id):
    """Test that uploading with a session_id replaces that session's dataset."""
    response = upload(
        client,
        content=b"Category,Sales\nA,1\nB,2",
        filename="other.csv",
        data={"session_id": session_id},
    )

    assert response.status_code == 200
    assert response.json()["session_id"] == session_id
    assert get_dataset_store().get(session_id).schema.file_name == "other.csv"


@pytest.mark.integration
def test_failed_upload_keeps_previous_dataset(client, session_id):
    response = upload(client, content=b"", data={"session_id": session_id})

    assert response.status_code == 400
    assert get_dataset_store().get(session_id).schema.file_name == "sales.csv"


@pytest.mark.integration
def test_upload_invalid_file_type(client):
    """Test uploading an invalid file type."""
    response = upload(client, content=b"some content", filename="test.txt")

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "INVALID_FILE_TYPE"
    assert "Unsupported file format" in detail["detail"]


@pytest.mark.integration
def test_upload_empty_file(client):
    """Test uploading an empty file."""
    response = upload(client, content=b"", filename="empty.csv")

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "FILE_EMPTY"


@pytest.mark.integration
def test_upload_json_file(client):
    response = client.post(
        "/api/upload",
        files={"file": ("data.json", BytesIO(b'[{"Category": "A", "Sales": 3}, {"Category": "B", "Sales": 5}]'), "application/json")}
    )

    assert response.status_code == 200
    assert response.json()["schema"]["file_type"] == "json"


@pytest.mark.integration
def test_recommendations_endpoint(client, session_id):
    response = client.get(f"/api/sessions/{session_id}/recommendations")

    assert response.status_code == 200
    types = [r["type"] for r in response.json()]
    assert types[0] == "line"
    scores = [r["suitability_score"] for r in response.json()]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.integration
def test_generate_from_prompt(client, session_id):
    """Test the free-text chart request flow."""
    response = client.post(
        f"/api/sessions/{session_id}/generate",
        json={"prompt": "average sales by region as a pie chart"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["intent"]["chart_type"] == "pie"
    assert data["intent"]["aggregation"] == "mean"
    assert data["spec"]["mark"]["type"] == "arc"


@pytest.mark.integration
def test_generate_prompt_too_long(client, session_id):
    response = client.post(
        f"/api/sessions/{session_id}/generate",
        json={"prompt": "x" * 2001}
    )

    assert response.status_code == 422


@pytest.mark.integration
def test_compile_intent(client, session_id):
    """Test compiling an edited intent."""
    intent = {
        "chart_type": "bar",
        "x_field": "Region",
        "y_field": "Sales",
        "sort_order": "ascending",
        "filter_conditions": [{"field": "Region", "value": "North"}],
    }

    response = client.post(f"/api/sessions/{session_id}/compile", json={"intent": intent})

    assert response.status_code == 200
    spec = response.json()["spec"]
    assert spec["encoding"]["x"]["field"] == "Region"
    assert spec["transform"] == [{"filter": {"field": "Region", "equal": "North"}}]


@pytest.mark.integration
def test_compile_intent_without_x(client, session_id):
    response = client.post(f"/api/sessions/{session_id}/compile", json={"intent": {"chart_type": "bar"}})

    assert response.status_code == 200
    assert response.json()["spec"] is None


@pytest.mark.integration
def test_insights_endpoint(client, session_id):
    response = client.post(
        f"/api/sessions/{session_id}/insights",
        json={"x_field": "Region", "y_field": "Sales"}
    )

    assert response.status_code == 200
    insights = response.json()
    assert insights[-1]["description"] == '"North" leads with 350 total Sales'


@pytest.mark.integration
@pytest.mark.parametrize("method,path,body", [
    ("get", "recommendations", None),
    ("post", "generate", {"prompt": "bar chart"}),
    ("post", "compile", {"intent": {"chart_type": "bar"}}),
    ("post", "insights", {}),
])
def test_unknown_session(client, method, path, body):
    """Test that session endpoints answer 404 for unknown sessions."""
    kwargs = {"json": body} if body is not None else {}
    response = getattr(client, method)(f"/api/sessions/{uuid.uuid4().hex}/{path}", **kwargs)

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "DATASET_NOT_FOUND"


@pytest.mark.integration
def test_correlation_id_header(client):
    """Test that correlation ID is returned in response headers."""
    correlation_id = str(uuid.uuid4())
    response = upload(client, headers={"X-Correlation-ID": correlation_id})

    assert response.status_code == 200
    assert response.headers["X-Correlation-ID"] == correlation_id


@pytest.mark.integration
def test_correlation_id_generated(client):
    """Test that correlation ID is generated if not provided."""
    response = client.get("/api/health")

    assert "X-Correlation-ID" in response.headers
    # Should be a valid UUID
    uuid.UUID(response.headers["X-Correlation-ID"])


@pytest.mark.integration
def test_error_with_correlation_id(client):
    """Test that error responses include correlation ID."""
    correlation_id = str(uuid.uuid4())
    response = client.get(
        f"/api/sessions/{uuid.uuid4().hex}/recommendations",
        headers={"X-Correlation-ID": correlation_id}
    )

    assert response.status_code == 404
    assert response.headers["X-Correlation-ID"] == correlation_id
    assert response.json()["detail"]["correlation_id"] == correlation_id


@pytest.mark.integration
def test_upload_rate_limit(client):
    """Test that uploads beyond the per-minute limit get 429."""
    for _ in range(10):
        assert upload(client).status_code == 200

    response = upload(client)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"
    assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"


@pytest.mark.integration
def test_large_dataset_truncation(client):
    """Test that large datasets are truncated in response."""
    rows = ["name,value"] + [f"row{i},{i}" for i in range(6000)]
    csv_content = "\n".join(rows).encode()

    response = upload(client, content=csv_content, filename="large.csv")

    assert response.status_code == 200
    data = response.json()
    assert data["schema"]["row_count"] == 6000
    assert len(data["dataset"]) == 5000


@pytest.mark.integration
def test_invalid_column_names(client):
    """Test that invalid column names are rejected."""
    response = upload(client, content=b"../../../etc/passwd,value\ntest,10")

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_CONTENT"
