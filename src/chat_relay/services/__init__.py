from .authenticator import SessionAuthenticator
from .routers import AuthAPI, UserAPI, MessageAPI
