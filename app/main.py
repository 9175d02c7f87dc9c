from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from app.auth.session import SessionRegistry
from app.core.firebase_init import initialize_firebase, get_firebase_status
from app.database.database_service import database_service
from app.services.sync_manager import SyncManager

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Barangay Portal API",
    description="Barangay civic portal: announcements, alerts, officials, events, voting and feedback",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Adjust as needed for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Initialize Firebase and the shared sync layer"""
    logger.info("🚀 FastAPI startup event triggered")
    if not initialize_firebase():
        logger.warning(f"⚠️ Running without Firebase features: {get_firebase_status()['last_error']}")

    if not hasattr(app.state, "sync_manager"):
        app.state.sync_manager = SyncManager(database_service)
    if not hasattr(app.state, "sessions"):
        app.state.sessions = SessionRegistry(app.state.sync_manager)


@app.on_event("shutdown")
async def shutdown_event():
    """Tear down every live session and subscription"""
    logger.info("⛔ FastAPI shutdown event triggered")
    if hasattr(app.state, "sessions"):
        app.state.sessions.close_all()
    if hasattr(app.state, "sync_manager"):
        app.state.sync_manager.unsubscribe_all()


def safe_include_router(router_module_path: str, router_name: str = "router"):
    """Safely include a router with error handling"""
    try:
        module = __import__(router_module_path, fromlist=[router_name])
        router = getattr(module, router_name)
        app.include_router(router)
        logger.info(f"✅ Successfully included {router_module_path}")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to include {router_module_path}: {str(e)}")
        import traceback
        traceback.print_exc()
        return False


logger.info("Loading routers...")

# voting/registrations before content so /voting/my-votes is not read as a record id
routers_to_load = [
    ("app.routers.auth", "Authentication"),
    ("app.routers.residents", "Residents & Admin Accounts"),
    ("app.routers.voting", "Voting"),
    ("app.routers.registrations", "Event Registrations"),
    ("app.routers.feedback", "Feedback"),
    ("app.routers.content", "Content"),
    ("app.routers.uploads", "Uploads"),
    ("app.routers.analytics", "Analytics"),
    ("app.routers.realtime", "Realtime"),
]

successful_routers = []
failed_routers = []

for router_path, router_description in routers_to_load:
    if safe_include_router(router_path):
        successful_routers.append(router_description)
    else:
        failed_routers.append(router_description)

logger.info(f"Successfully loaded routers: {successful_routers}")
if failed_routers:
    logger.warning(f"Failed to load routers: {failed_routers}")


@app.get("/")
async def root():
    return {
        "message": "Welcome to the Barangay Portal API",
        "firebase_status": get_firebase_status(),
        "loaded_routers": successful_routers,
        "failed_routers": failed_routers
    }


@app.get("/health")
async def health_check():
    sync_manager = getattr(app.state, "sync_manager", None)
    return {
        "status": "healthy",
        "firebase_available": get_firebase_status()['available'],
        "active_subscriptions": sync_manager.active_subscriptions if sync_manager else 0,
        "live_sessions": len(app.state.sessions) if hasattr(app.state, "sessions") else 0,
        "loaded_routers": len(successful_routers),
        "failed_routers": len(failed_routers)
    }
