from groq import AsyncGroq
from langchain_groq import ChatGroq
from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings
from product_finder.core.config import settings


def get_llm():
    """Retorna o modelo de Chat (Groq - Llama 3)"""
    return ChatGroq(
        temperature=settings.LLM_TEMPERATURE,
        model=settings.CHAT_MODEL,
        groq_api_key=settings.GROQ_API_KEY,
        timeout=settings.REQUEST_TIMEOUT,
        max_retries=0,
    )


def get_embeddings():
    """Retorna o modelo de Embeddings (Google)"""
    return GoogleGenerativeAIEmbeddings(
        model=settings.EMBEDDING_MODEL,
        google_api_key=settings.GOOGLE_API_KEY,
        request_options={"timeout": settings.REQUEST_TIMEOUT},
    )


def get_vision_llm():
    """Retorna o modelo multimodal usado para descrever imagens (Gemini)"""
    return ChatGoogleGenerativeAI(
        model=settings.VISION_MODEL,
        google_api_key=settings.GOOGLE_API_KEY,
        temperature=0,
        timeout=settings.REQUEST_TIMEOUT,
        max_retries=0,
    )


def get_transcription_client():
    """Retorna o cliente Groq usado para transcrição (Whisper)"""
    return AsyncGroq(
        api_key=settings.GROQ_API_KEY,
        timeout=settings.REQUEST_TIMEOUT,
        max_retries=0,
    )
