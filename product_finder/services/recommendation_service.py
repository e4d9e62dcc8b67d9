import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from product_finder.core.config import settings
from product_finder.core.exceptions import CompletionFailed, ProductFinderError
from product_finder.schemas.query import SearchQuery
from product_finder.schemas.search import (
    ChatTurn,
    ErrorResponse,
    ProductMatch,
    SearchResponse,
    SearchResult,
)
from product_finder.services.llm_factory import get_llm
from product_finder.services.normalizer import ModalityNormalizer
from product_finder.services.prompts import (
    NO_RESULTS_MESSAGE,
    SYSTEM_PROMPT,
    USER_MESSAGE_TEMPLATE,
    format_products_list,
)
from product_finder.services.vector_index import VectorIndexClient

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    SEARCHED = "searched"
    FILTERED = "filtered"
    NO_RESULTS = "no_results"
    RECOMMENDED = "recommended"
    RESPONDED = "responded"
    FAILED = "failed"


@dataclass
class RecommendationOutcome:
    state: PipelineState
    status_code: int
    body: Union[SearchResponse, ErrorResponse]

    @property
    def success(self) -> bool:
        return self.body.success


class RecommendationService:
    """
    Query -> recommendation pipeline:
    normalize -> search -> relevance cutoff -> grounded completion -> response.

    ``recommend`` never raises; every failure comes back as a FAILED outcome
    carrying the status code and message for the caller.
    """

    def __init__(
        self,
        normalizer: ModalityNormalizer,
        index: VectorIndexClient,
        llm=None,
        top_k: Optional[int] = None,
        relevance_threshold: Optional[float] = None,
    ):
        self.normalizer = normalizer
        self.index = index
        self.llm = llm if llm is not None else get_llm()
        self.top_k = top_k or settings.SEARCH_TOP_K
        self.relevance_threshold = (
            relevance_threshold if relevance_threshold is not None else settings.RELEVANCE_THRESHOLD
        )
        self.prompt = ChatPromptTemplate.from_messages(
            [
                MessagesPlaceholder("history"),
                ("system", SYSTEM_PROMPT),
                ("user", USER_MESSAGE_TEMPLATE),
            ]
        )

    async def recommend(
        self, query: SearchQuery, history: Optional[List[ChatTurn]] = None
    ) -> RecommendationOutcome:
        state = PipelineState.RECEIVED
        try:
            normalized = await self.normalizer.normalize(query)
            state = PipelineState.NORMALIZED
            logger.info(f"Consulta ({normalized.modality}): {normalized.query_text[:80]!r}")

            results = await self.index.search(normalized.vector, self.top_k)
            state = PipelineState.SEARCHED

            relevant = self.filter_relevant(results)
            state = PipelineState.FILTERED
            logger.info(
                f"{len(results)} resultados, {len(relevant)} dentro do limite de {self.relevance_threshold}"
            )

            if not relevant:
                # Sem contexto não há recomendação: nada de chamar a LLM
                return RecommendationOutcome(
                    state=PipelineState.NO_RESULTS,
                    status_code=200,
                    body=SearchResponse(
                        query=normalized.query_text,
                        response=NO_RESULTS_MESSAGE,
                        products=[],
                    ),
                )

            answer, updated_history = await self.generate_recommendation(
                normalized.query_text, relevant, history
            )
            state = PipelineState.RECOMMENDED
            logger.info(f"Recomendação gerada ({len(answer)} caracteres) em '{state.value}'")

            return RecommendationOutcome(
                state=PipelineState.RESPONDED,
                status_code=200,
                body=SearchResponse(
                    query=normalized.query_text,
                    response=answer,
                    products=[ProductMatch.from_result(r) for r in relevant],
                    history=updated_history,
                ),
            )

        except ProductFinderError as e:
            logger.warning(f"Pipeline falhou em '{state.value}': {e.message}")
            return self._failure(e.status_code, e.message)
        except Exception as e:
            logger.error(f"❌ Erro inesperado em '{state.value}': {e}", exc_info=True)
            return self._failure(500, "Failed to process search request")

    def filter_relevant(self, results: List[SearchResult]) -> List[SearchResult]:
        return [
            r
            for r in results
            if r.distance is not None
            and math.isfinite(r.distance)
            and r.distance <= self.relevance_threshold
        ]

    async def generate_recommendation(
        self,
        query_text: str,
        candidates: List[SearchResult],
        history: Optional[List[ChatTurn]] = None,
    ) -> Tuple[str, Optional[List[ChatTurn]]]:
        # Apenas turnos user/assistant entram no histórico
        prior = [t for t in history or [] if t.role != "system"]

        messages = self.prompt.format_messages(
            history=[(t.role, t.content) for t in prior],
            query=query_text,
            products_list=format_products_list(candidates),
        )

        chain = self.llm | StrOutputParser()
        try:
            answer = await chain.ainvoke(messages)
        except Exception as e:
            logger.error(f"❌ Erro ao gerar recomendação: {e}", exc_info=True)
            raise CompletionFailed() from e

        answer = (answer or "").strip()
        if not answer:
            raise CompletionFailed()

        if history is None:
            return answer, None

        user_message = messages[-1].content
        return answer, prior + [
            ChatTurn(role="user", content=user_message),
            ChatTurn(role="assistant", content=answer),
        ]

    @staticmethod
    def _failure(status_code: int, message: str) -> RecommendationOutcome:
        return RecommendationOutcome(
            state=PipelineState.FAILED,
            status_code=status_code,
            body=ErrorResponse(message=message),
        )
