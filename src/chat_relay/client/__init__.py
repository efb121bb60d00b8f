from .chat_client import ChatClient
