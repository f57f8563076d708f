"""
FaceScan-Auth - Main Entry Point
Face Authentication with Blink and Head-Movement Liveness
"""

import sys
import logging
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from core.camera import Camera
from core.capture import CaptureOrchestrator, CaptureStatus
from core.database import Database
from core.errors import CaptureFailure, DuplicateIdentityError, FaceAuthError, UserAlreadyExistsError
from core.face_auth import FaceAuthenticator
from core.face_detector import FaceDetector
from core.liveness import LivenessTracker
from core.matcher import FaceMatcher
from utils.helpers import format_duration, format_timestamp, load_config, load_environment, setup_logging
from utils.tts import TextToSpeech

logger = logging.getLogger(__name__)


class InstructionPrinter:
    """Prints capture instructions to the console when they change"""

    def __init__(self):
        self.last_instruction = None

    def __call__(self, status: CaptureStatus):
        if status.instruction != self.last_instruction:
            self.last_instruction = status.instruction
            print(
                f"  → {status.instruction}  "
                f"[blinks {status.blink_count}/{status.required_blinks}, "
                f"head moves {status.head_move_count}/{status.required_head_moves}, "
                f"samples {status.samples_captured}/{status.required_samples}]"
            )


def register_user(auth: FaceAuthenticator, config: dict):
    name = input("Enter name: ").strip()
    if not name:
        print("Name cannot be empty!")
        return

    print("\nWe'll capture your face as you naturally appear:")
    try:
        profile = auth.register(name)
    except UserAlreadyExistsError:
        print("Username already exists!")
        return
    except CaptureFailure as e:
        budget = config.get('capture', {}).get('max_capture_seconds', 30)
        print(f"Registration failed - couldn't capture enough samples ({e.captured}/{e.required} in {format_duration(budget)})")
        return
    except DuplicateIdentityError as e:
        print(f"❌ User already registered as: {e.existing_name} (Similarity: {e.similarity:.0%})")
        return

    print(f"✅ Registration successful! ({profile.sample_count} samples stored)")


def authenticate_user(auth: FaceAuthenticator):
    print("\nPlease face the camera naturally")
    try:
        result = auth.authenticate()
    except CaptureFailure:
        print("Authentication failed - couldn't capture face properly")
        return

    print("\nSimilarity Results:")
    for line in result.per_sample_similarities:
        print(line)

    if result.matched:
        print(f"\n✅ Welcome {result.matched_user_name}! (Confidence: {result.confidence:.0%})")
    else:
        print("\n❌ Authentication failed")


def list_users(auth: FaceAuthenticator):
    users = auth.list_users()
    if not users:
        print("No registered users found.")
        return users

    print("\nRegistered Users:")
    print("-" * 16)
    for user in users:
        print(f"- {user.name} (Last updated: {format_timestamp(user.last_updated)})")
        print(f"  Samples: {user.sample_count}")
        print(f"  Glasses Samples: {user.glasses_count}")
        print(f"  Facial Hair Samples: {user.facial_hair_count}")
    return users


def delete_user(auth: FaceAuthenticator):
    users = auth.list_users()
    if not users:
        print("No users to delete.")
        return

    print("\nSelect user to delete:")
    for i, user in enumerate(users, start=1):
        print(f"{i}. {user.name}")

    try:
        choice = int(input("\nEnter user number to delete (0 to cancel): ").strip())
    except ValueError:
        print("Invalid user number.")
        return

    if not 0 < choice <= len(users):
        return

    user = users[choice - 1]
    confirm = input(f"Delete {user.name}? (y/n): ").strip().lower()
    if confirm == "y":
        if auth.delete_user(user.name):
            print(f"User {user.name} deleted.")
        else:
            print(f"[ERROR] Failed to delete {user.name}.")


def run_menu(auth: FaceAuthenticator, config: dict):
    while True:
        print("\n==== FaceScan-Auth ====")
        print("1. Register User")
        print("2. Authenticate User")
        print("3. List Users")
        print("4. Delete User")
        print("5. Exit")

        choice = input("Select an option: ").strip()

        if choice == "1":
            register_user(auth, config)
        elif choice == "2":
            authenticate_user(auth)
        elif choice == "3":
            list_users(auth)
        elif choice == "4":
            delete_user(auth)
        elif choice == "5":
            print("Goodbye!")
            return
        else:
            print("Invalid option")


def main():
    """Main application entry point"""

    # Load environment variables
    load_environment()

    # Load configuration
    config = load_config()

    # Setup logging
    app_config = config.get('app', {})
    setup_logging(
        log_level=app_config.get('log_level', 'INFO'),
        log_file=app_config.get('log_file', 'faceauth.log')
    )

    logger.info("=" * 60)
    logger.info("FACESCAN-AUTH - Face Authentication System")
    logger.info(f"Version: {app_config.get('version', '1.0.0')}")
    logger.info("=" * 60)

    camera = Camera(config)
    db = Database(config.get('database', {}).get('path', 'faceauth_db.sqlite'))
    voice = None

    try:
        print("Initializing system...")
        db.connect()
        db.initialize_schema()

        print("Loading models...")
        detector = FaceDetector(config)
        voice = TextToSpeech(config)
        camera.open()

        capture = CaptureOrchestrator(
            camera,
            detector,
            LivenessTracker(config),
            config=config,
            voice=voice,
            on_status=InstructionPrinter(),
        )
        auth = FaceAuthenticator(config, db, capture, matcher=FaceMatcher(config), voice=voice)

        run_menu(auth, config)

    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except (FaceAuthError, RuntimeError) as e:
        logger.error(f"Application error: {e}", exc_info=True)
        print(f"\n❌ Error: {e}")
        print("\n⚠️  Troubleshooting:")
        print("1. Ensure all dependencies are installed: pip install -e '.[vision,voice]'")
        print("2. Check that the camera is connected and not in use")
        print("3. See logs for detailed error information")
        sys.exit(1)
    finally:
        camera.release()
        db.close()
        if voice is not None:
            voice.shutdown()
        logger.info("Application shutdown complete")


if __name__ == "__main__":
    main()
