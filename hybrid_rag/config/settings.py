from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    llm_base_url: str = "http://localhost:11434/v1"
    llm_model: str = "qwen2.5:7b"
    llm_max_tokens: int = 1024
    llm_timeout: float = 120.0

    # "ollama" or "sentence-transformers"
    embedding_backend: str = "ollama"
    embedding_model: str = "intfloat/multilingual-e5-large-instruct"
    embedding_dimension: int = 1024
    ollama_base_url: str = "http://localhost:11434"

    # "json" or "chroma"
    corpus_backend: str = "json"
    corpus_path: str = "./data/corpus.json"
    chroma_host: str = "localhost"
    chroma_port: int = 8001
    chroma_collection: str = "hybrid_rag_passages"

    rag_min_confidence: float = 0.15
    rag_temperature: float = 0.1
    rag_vector_weight: float = 0.8
    rag_recall_k: int = 30
    rag_top_k: int = 5
    rag_fallback_queries: int = 3
    rag_fallback_temperature: float = 0.7
    rag_max_concurrency: int = 4
    rag_rewrite_timeout: float = 30.0
    system_prompt: str = ""

    health_timeout: float = 2.0

    # Evaluation
    judge_enabled: bool = True
    benchmark_pass_threshold: float = 0.6
    tuning_acceptance: float = 0.85
    finetuning_min_score: float = 0.8

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
