import re
import secrets
from datetime import datetime, timedelta
from typing import Optional

import jwt
from eth_account import Account
from eth_account.messages import encode_defunct
from loguru import logger
from sqlmodel import Session, select, update

from app.core.config import settings
from app.core.errors import UnauthorizedError, ValidationError
from app.db.schema import SignInNonce
from app.models.auth import NonceChallenge, SignatureVerify, Token, TokenData
from app.utils.address import normalize_address


NONCE_PATTERN = re.compile(r"Nonce: ([0-9a-f]{32})")


class AuthService:
    """
    Wallet sign-in: the client signs a one-time challenge with its wallet
    (EIP-191 personal message) and trades the signature for an access token
    whose subject is the wallet address.
    """
    ALGORITHM = "HS256"

    def __init__(self, session: Session):
        self.session = session

    def issue_challenge(self, wallet_address: str) -> NonceChallenge:
        address = normalize_address(wallet_address, "wallet_address")
        nonce = secrets.token_hex(16)
        expires_at = datetime.utcnow() + timedelta(
            minutes=settings.sign_in_nonce_ttl_minutes)

        self.session.add(SignInNonce(
            wallet_address=address, nonce=nonce, expires_at=expires_at))
        self.session.commit()

        return NonceChallenge(
            wallet_address=address,
            message=f"Sign in to {settings.app_name}\n\nWallet: {address}\nNonce: {nonce}",
            expires_at=expires_at,
        )

    def verify_signature(self, data: SignatureVerify) -> Token:
        address = normalize_address(data.wallet_address, "wallet_address")

        match = NONCE_PATTERN.search(data.message)
        if not match:
            raise UnauthorizedError("Sign-in message has no nonce.")

        challenge = self.session.exec(
            select(SignInNonce).where(SignInNonce.nonce == match.group(1))
        ).first()
        if (
            not challenge
            or challenge.wallet_address != address
            or challenge.consumed
            or challenge.expires_at < datetime.utcnow()
        ):
            raise UnauthorizedError("Sign-in challenge is invalid or expired.")

        try:
            signer = Account.recover_message(
                encode_defunct(text=data.message), signature=data.signature)
        except (ValueError, TypeError) as exc:
            logger.info(f"Unreadable signature for {address}: {exc}")
            raise UnauthorizedError("Signature could not be verified.")

        if signer.lower() != address:
            raise UnauthorizedError("Signature does not match the wallet.")

        # Single use even when two verifications race
        result = self.session.exec(
            update(SignInNonce)
            .where(SignInNonce.id == challenge.id)
            .where(SignInNonce.consumed == False)
            .values(consumed=True)
        )
        self.session.commit()
        if result.rowcount != 1:
            raise UnauthorizedError("Sign-in challenge is invalid or expired.")

        logger.info(f"Wallet signed in: {address}")
        return Token(access_token=self._create_jwt(address), token_type="bearer")

    def decode_token(self, token: str) -> Optional[TokenData]:
        try:
            payload = jwt.decode(token, settings.secret_key,
                                 algorithms=[self.ALGORITHM])
            subject = payload.get("sub")

            if not subject or payload.get("type") != "access":
                return None

            return TokenData(wallet_address=normalize_address(subject))
        except (jwt.PyJWTError, ValidationError):
            return None

    def _create_jwt(self, subject: str) -> str:
        to_encode = {
            "sub": subject,
            "exp": datetime.utcnow() + timedelta(
                minutes=settings.access_token_expire_minutes),
            "type": "access"
        }
        return jwt.encode(to_encode, settings.secret_key, algorithm=self.ALGORITHM)
