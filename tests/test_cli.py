from unittest.mock import AsyncMock, MagicMock

import pytest

from product_finder import cli
from product_finder.core.exceptions import BackendUnavailable
from product_finder.schemas.search import ErrorResponse, ProductMatch, SearchResponse
from product_finder.services.recommendation_service import (
    PipelineState,
    RecommendationOutcome,
)


@pytest.fixture(autouse=True)
def no_engine(monkeypatch):
    monkeypatch.setattr(cli, "engine", AsyncMock())


@pytest.fixture
def outcome():
    return RecommendationOutcome(
        state=PipelineState.RESPONDED,
        status_code=200,
        body=SearchResponse(
            query="desk lamp",
            response="Try the Desk Lamp.",
            products=[ProductMatch(product_id=7, title="Desk Lamp", distance=0.1234, type="name")],
        ),
    )


class TestParseArgs:
    def test_import_products(self):
        args = cli.parse_args(["import-products", "catalog.xml"])
        assert args.command == "import-products"
        assert args.file == "catalog.xml"

    def test_process_audio_simple(self):
        args = cli.parse_args(["process-audio", "q.mp3", "--simple"])
        assert args.path == "q.mp3"
        assert args.simple is True

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])


class TestPrintOutcome:
    def test_full_output(self, outcome, capsys):
        assert cli.print_outcome(outcome) == 0

        out = capsys.readouterr().out
        assert "Query: desk lamp" in out
        assert "Try the Desk Lamp." in out
        assert "[7] Desk Lamp" in out

    def test_simple_output(self, outcome, capsys):
        cli.print_outcome(outcome, simple=True)

        assert capsys.readouterr().out.strip() == "Try the Desk Lamp."

    def test_failure(self, capsys):
        failed = RecommendationOutcome(
            state=PipelineState.FAILED,
            status_code=400,
            body=ErrorResponse(message="Invalid image type"),
        )

        assert cli.print_outcome(failed) == 1
        assert "Invalid image type" in capsys.readouterr().err


class TestCommands:
    def test_import_aborts_when_collection_unusable(self, monkeypatch, tmp_path, mock_gateway):
        catalog = tmp_path / "catalog.json"
        catalog.write_text('[{"id": 1, "name": "Cup"}]', encoding="utf-8")
        index = MagicMock()
        index.ensure_collection = AsyncMock(return_value=False)
        monkeypatch.setattr(cli.EmbeddingGateway, "create", AsyncMock(return_value=mock_gateway))
        monkeypatch.setattr(cli, "VectorIndexClient", MagicMock(return_value=index))

        assert cli.main(["import-products", str(catalog)]) == 1
        mock_gateway.embed_texts.assert_not_awaited()

    def test_import_products(self, monkeypatch, tmp_path, mock_gateway, mock_index, capsys):
        catalog = tmp_path / "catalog.json"
        catalog.write_text(
            '{"products": [{"id": 1, "name": "Cup"}, {"name": "No id"}]}', encoding="utf-8"
        )
        monkeypatch.setattr(cli.EmbeddingGateway, "create", AsyncMock(return_value=mock_gateway))
        monkeypatch.setattr(cli, "VectorIndexClient", MagicMock(return_value=mock_index))

        assert cli.main(["import-products", str(catalog)]) == 0

        out = capsys.readouterr().out
        assert "Imported: 1" in out
        assert "Failed:   1" in out

    def test_missing_image_file(self, tmp_path, capsys):
        assert cli.main(["process-image", str(tmp_path / "missing.png")]) == 1
        assert "file not found" in capsys.readouterr().err

    def test_backend_down_exits_with_error(self, monkeypatch, capsys):
        monkeypatch.setattr(
            cli.EmbeddingGateway, "create", AsyncMock(side_effect=BackendUnavailable())
        )

        assert cli.main(["search", "lamp"]) == 1
        assert "Embedding service unavailable" in capsys.readouterr().err

    def test_drop_collection(self, monkeypatch, capsys):
        index = MagicMock()
        index.drop_collection = AsyncMock(return_value=True)
        monkeypatch.setattr(cli, "VectorIndexClient", MagicMock(return_value=index))

        assert cli.main(["drop-collection"]) == 0
        index.drop_collection.assert_awaited_once()
