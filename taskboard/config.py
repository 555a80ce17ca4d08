import logging
import os

from dotenv import load_dotenv

# Carrega variáveis de ambiente do arquivo .env
load_dotenv()

# Banco local por padrão; qualquer URL do SQLAlchemy funciona (ex: postgresql://...)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///taskboard.db").replace("postgres://", "postgresql://")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Cabeçalho que o proxy de autenticação preenche com o id do usuário logado
USER_HEADER = "X-User-Id"


def configure_logging():
    """Configura o logging da aplicação uma única vez."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
