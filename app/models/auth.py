from datetime import datetime
from sqlmodel import SQLModel


class NonceRequest(SQLModel):
    wallet_address: str


class NonceChallenge(SQLModel):
    wallet_address: str
    message: str
    expires_at: datetime


class SignatureVerify(SQLModel):
    wallet_address: str
    message: str
    signature: str


class Token(SQLModel):
    access_token: str
    token_type: str


class TokenData(SQLModel):
    wallet_address: str
