"""REST API endpoints for the private transfer core."""

import logging
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from zkt.config import Settings, configure_logging
from zkt.core.commitment import Account, generate_secret_key
from zkt.core.registry import AccountRegistry
from zkt.crypto.engine import CryptoEngine
from zkt.exceptions import (
    AccountNotFoundError,
    DuplicateLeafError,
    LeafNotFoundError,
    ZKTransferException,
)
from zkt.models.schemas import (
    AccountModel,
    AccountProofInputs,
    AccountResponse,
    CreateAccountRequest,
    HealthResponse,
    MerkleProofModel,
    StateResponse,
    TransferRequest,
)

logger = logging.getLogger(__name__)


def create_app(registry: Optional[AccountRegistry] = None,
               settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API around an explicitly constructed registry.

    Args:
        registry: Registry to serve; built from ``settings`` when omitted
        settings: Configuration; read from the environment when omitted
    """
    settings = settings or Settings()
    configure_logging(settings)
    if registry is None:
        registry = AccountRegistry(CryptoEngine.from_settings(settings))

    app = FastAPI(
        title="ZK Private Transfer API",
        description="Commitments, nullifiers, and Merkle proofs for private balance transfers",
        version="0.1.0",
    )
    app.state.registry = registry

    @app.exception_handler(ZKTransferException)
    async def domain_exception_handler(request: Request, exc: ZKTransferException):
        if isinstance(exc, (AccountNotFoundError, LeafNotFoundError)):
            status = 404
        elif isinstance(exc, DuplicateLeafError):
            status = 409
        else:
            status = 400
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc}")
        return JSONResponse(status_code=status, content={"detail": str(exc), "code": type(exc).__name__})

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="operational")

    @app.get("/state", response_model=StateResponse)
    async def state() -> StateResponse:
        stats = registry.get_stats()
        return StateResponse(
            merkle_root=stats["tree_root"],
            tree_depth=registry.accumulator.depth,
            num_leaves=stats["leaf_count"],
            num_nullifiers=stats["spent_nullifiers"],
        )

    @app.post("/accounts", response_model=AccountResponse, status_code=201)
    async def create_account(request: CreateAccountRequest) -> AccountResponse:
        generated = request.secret_key is None
        secret = generate_secret_key() if generated else request.secret_key
        account = registry.commitments.create_account(
            secret, balance=request.balance, nonce=request.nonce, asset_id=request.asset_id
        )
        commitment = registry.add_account(account, request.owner)
        return AccountResponse(
            account=AccountModel(**account.to_dict()),
            commitment=commitment,
            merkle_root=registry.accumulator.root,
            secret_key=secret if generated else None,
        )

    @app.get("/accounts/{owner}", response_model=List[AccountModel])
    async def list_accounts(owner: str) -> List[AccountModel]:
        return [AccountModel(**account.to_dict()) for account in registry.accounts_by_owner(owner)]

    @app.get("/proofs/{commitment}", response_model=MerkleProofModel)
    async def get_proof(commitment: str) -> MerkleProofModel:
        return registry.accumulator.proof(commitment).to_model()

    @app.post("/transfers", response_model=AccountProofInputs)
    async def create_transfer(request: TransferRequest) -> AccountProofInputs:
        sender = Account(**request.sender.model_dump())
        recipient = Account(**request.recipient.model_dump())
        transfer = registry.transfer(request.sender_secret_key, sender, recipient, request.amount)
        return transfer.proof_inputs

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
