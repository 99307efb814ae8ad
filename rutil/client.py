from __future__ import annotations

import os
from dataclasses import dataclass

import redis
from redis.cluster import RedisCluster

from rutil.errors import ConfigError

# Same variable redis-cli reads, so a password need not appear on the command line.
AUTH_ENV = "REDISCLI_AUTH"


@dataclass(frozen=True)
class ClientConfig:
    host: str = "127.0.0.1"
    port: int = 6379
    password: str | None = None
    cluster: bool = False
    db: int = 0

    def resolved_password(self) -> str | None:
        if self.password:
            return self.password
        return os.environ.get(AUTH_ENV) or None


def connect(config: ClientConfig):
    """Open a client handle; the caller owns it and must close it.

    Replies are left as bytes since DUMP payloads are binary.
    """
    if config.cluster and config.db != 0:
        raise ConfigError("cluster mode only has database 0; drop --db")
    password = config.resolved_password()
    if config.cluster:
        client = RedisCluster(host=config.host, port=config.port, password=password)
    else:
        client = redis.Redis(
            host=config.host,
            port=config.port,
            db=config.db,
            password=password,
            decode_responses=False,
        )
        try:
            client.ping()
        except redis.exceptions.RedisError:
            client.close()
            raise
    return client
