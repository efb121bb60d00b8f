from .db_manager import DatabaseManager
from .gateways import UserGateway, MessageGateway
from .dto import UserDTO, UserCredentialsDTO, MessageDTO
