from dataclasses import dataclass, field
from environs import Env

@dataclass
class JWTConfig:
    secret_key: str
    access_token_expire_minutes: int = 480

@dataclass
class DBConfig:
    """ PostgreSQL """
    host: str | None = None
    port: int | None = None
    name: str | None = None
    user: str | None = None
    password: str | None = None

    """ SQLite """
    path: str | None = None

@dataclass
class RedisConfig:
    host: str | None = 'localhost'
    port: int | None = 6379

@dataclass
class RelayConfig:
    presence_backend: str = 'memory'
    store_timeout: float = 10.0
    cors_allowed_origins: list[str] = field(default_factory=lambda: ['http://localhost:3000'])

@dataclass
class ServerConfig:
    host: str = '0.0.0.0'
    port: int = 5000
    log_level: str = 'INFO'

@dataclass
class Config:
    """ Config """
    jwt: JWTConfig
    db: DBConfig
    redis: RedisConfig
    relay: RelayConfig = field(default_factory=RelayConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

def load_config(path: str | None) -> Config:
    env = Env()
    env.read_env(path)

    return Config(
        jwt=JWTConfig(
            secret_key=env('SECRET_KEY'),
            access_token_expire_minutes=env.int('ACCESS_TOKEN_EXPIRE_MINUTES', 480),
        ),
        db=DBConfig(
            host=env('DB_HOST', None),
            port=env.int('DB_PORT', None),
            name=env('DB_NAME', None),
            user=env('DB_USER', None),
            password=env('DB_PASSWORD', None),
            path=env('DB_PATH', 'data/chat.db')
        ),
        redis=RedisConfig(
            host=env('REDIS_HOST', 'localhost'),
            port=env.int('REDIS_PORT', 6379)
        ),
        relay=RelayConfig(
            presence_backend=env('PRESENCE_BACKEND', 'memory'),
            store_timeout=env.float('STORE_TIMEOUT', 10.0),
            cors_allowed_origins=env.list('CORS_ALLOWED_ORIGINS', ['http://localhost:3000'])
        ),
        server=ServerConfig(
            host=env('HOST', '0.0.0.0'),
            port=env.int('PORT', 5000),
            log_level=env('LOG_LEVEL', 'INFO').upper()
        )
    )
