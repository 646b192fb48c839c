from fastapi import APIRouter, Depends
from media_sync.api import deps
from media_sync.schemas import ConnectionResponse
from media_sync.services.media_manager import MediaManagerClient

router = APIRouter()

@router.get("/connection", response_model=ConnectionResponse)
def test_connection(client: MediaManagerClient = Depends(deps.get_client)):
    """Send a test query to Media Manager with the configured credentials"""
    if not client.is_configured():
        return ConnectionResponse(base_uri=client.base_uri, configured=False, status="Media Manager API key and secret are not configured")
    return ConnectionResponse(base_uri=client.base_uri, configured=True, status=client.test_connection())
