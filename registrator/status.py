import logging
import threading
from flask import Flask, jsonify

from .lifecycle import LifecycleController, LifecycleState, RegistrationStatus

logger = logging.getLogger(__name__)

def status_body(controller: LifecycleController) -> dict:
    return {
        "state": controller.state.name.lower(),
        "registration": controller.registration_status.value,
        "targetId": controller.config.target_id,
        "targetGroupArn": controller.target_group_handle,
    }

def is_ready(controller: LifecycleController) -> bool:
    """Ready while the target is registered and shutdown has not begun."""
    return (controller.registration_status is RegistrationStatus.REGISTERED
            and controller.state is LifecycleState.BLOCKED
            and not controller.shutdown_event.is_set())

def create_status_app(controller: LifecycleController) -> Flask:
    """Create the status app reporting on ``controller``."""
    app = Flask(__name__)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Liveness endpoint, healthy for as long as the process runs."""
        body = status_body(controller)
        body["status"] = "healthy"
        return jsonify(body), 200

    @app.route('/ready', methods=['GET'])
    def readiness_check():
        """Readiness endpoint, reflects the target registration."""
        body = status_body(controller)
        if is_ready(controller):
            body["status"] = "ready"
            return jsonify(body), 200
        body["status"] = "not ready"
        return jsonify(body), 503

    return app

def start_status_server(controller: LifecycleController, port: int, host: str = '0.0.0.0') -> threading.Thread:
    """Start the status server on a daemon thread."""
    app = create_status_app(controller)

    def serve():
        try:
            app.run(host=host, port=port, threaded=True, use_reloader=False)
        except Exception as e:
            logger.error(f"Status server stopped: {str(e)}", exc_info=True)

    thread = threading.Thread(target=serve, name='status-server', daemon=True)
    thread.start()
    logger.info(f"Started status server on port {port}")
    return thread
