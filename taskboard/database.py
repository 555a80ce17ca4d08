from fastapi import Depends
from sqlmodel import SQLModel, create_engine, Session

from taskboard import models  # noqa: F401  (registra as tabelas no metadata)
from taskboard.config import DATABASE_URL
from taskboard.store import WorkshopStore

# SQLite precisa disso para evitar erros de thread com o FastAPI
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)

def create_db_and_tables():
    """
    Cria o banco de dados e todas as tabelas definidas nos modelos.
    Deve ser chamado na inicialização da aplicação.
    """
    SQLModel.metadata.create_all(engine)

def get_session():
    """
    Dependência para obter uma sessão do banco de dados.
    Gerencia o ciclo de vida da sessão (abre e fecha automaticamente).
    """
    with Session(engine) as session:
        yield session

def get_store(session: Session = Depends(get_session)) -> WorkshopStore:
    return WorkshopStore(session)
