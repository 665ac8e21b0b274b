"""
Configuration for the CouchDB client.

Uses pydantic-settings for environment variable loading, so a
deployment can point the client at its cluster without code changes:

    COUCHDB_API=3.3.3
    COUCHDB_SERVER=http://couch1:5984
    COUCHDB_EXTRA_SERVERS='["http://couch2:5984", "http://couch3:5984"]'
    COUCHDB_USERNAME=admin
    COUCHDB_PASSWORD=...

Use Couch.from_settings() to build a client from these.
"""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class CouchSettings(BaseSettings):
    """Client configuration loaded from environment."""

    api: str = Field(description="CouchDB API version the application expects")

    # Servers, in order of precedence
    server: str | None = Field(
        default="http://127.0.0.1:5984",
        description="Default server, registered as client 'local'",
    )
    extra_servers: list[str] = Field(
        default_factory=list,
        description="More servers, tried after the default server",
    )

    # Credentials, shared by all servers
    username: str | None = Field(default=None, description="Login name")
    password: SecretStr | None = Field(default=None, description="Login password")

    timeout: float = Field(default=30.0, description="Request timeout in seconds")

    model_config = {"env_prefix": "COUCHDB_"}

    def password_value(self) -> str | None:
        """The password in clear text, for the HTTP client only."""
        if self.password is None:
            return None
        return self.password.get_secret_value()
