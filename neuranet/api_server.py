"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server with WebSocket support for training neural networks.

This module provides endpoints for:
- Creating and managing feedforward networks
- Querying networks with input vectors
- Training networks on caller-supplied examples with real-time progress
  updates via WebSockets
- Plotting the cost history of a network

The server uses:
- Flask for REST API endpoints
- Flask-SocketIO for WebSocket communication
- Gevent for async background training tasks

Networks live in memory only; restarting the server discards them.
"""

import os
import sys
import uuid
import base64
import logging
from io import BytesIO
from typing import Dict, Any, List, Tuple

import gevent
import numpy as np
from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

# Use non-GUI backend for matplotlib (required for server environments)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

# Local imports
from neuranet.layout import build_network
from neuranet.network import TrainingExample

# ============================================================================
# LOGGING SETUP
# ============================================================================

def configure_logging() -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    is_production = os.getenv('FLASK_ENV') == 'production'

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # In production, silence noisy third-party logs but keep our logs visible
    if is_production:
        for logger_name in ['socketio', 'engineio', 'engineio.server',
                            'socketio.server', 'werkzeug']:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        logging.getLogger('neuranet').setLevel(logging.INFO)
    else:
        logging.getLogger('socketio').setLevel(logging.INFO)
        logging.getLogger('engineio').setLevel(logging.INFO)


configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# FLASK APP SETUP
# ============================================================================

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": "*"}})  # Allow requests from any origin

is_production = os.getenv('FLASK_ENV') == 'production'

# SocketIO enables real-time communication (WebSockets) for training updates
socketio = SocketIO(
    app,
    cors_allowed_origins="*",
    async_mode='gevent',
    logger=not is_production,
    engineio_logger=not is_production,
    ping_timeout=60,
    ping_interval=25
)

# ============================================================================
# TRAINING DEFAULTS
# ============================================================================

DEFAULT_LAYER_SIZES = [2, 3, 1]
DEFAULT_ACTIVATION = 'sigmoid'
DEFAULT_EPOCHS = 100
DEFAULT_LEARNING_RATE = 0.5
DEFAULT_MOMENTUM = 0.0

# ============================================================================
# GLOBAL STATE
# ============================================================================

# Networks currently loaded in memory: {network_id: network_info}
active_networks: Dict[str, Dict[str, Any]] = {}

# Training jobs being tracked: {job_id: job_info}
training_jobs: Dict[str, Dict[str, Any]] = {}


def cleanup_finished_training_jobs() -> None:
    """
    Remove completed or failed training jobs from memory.

    This prevents the training_jobs dictionary from growing indefinitely.
    Only removes jobs that are no longer active (completed or failed).
    """
    finished_statuses = {'completed', 'failed'}
    jobs_to_remove = [
        job_id for job_id, job_info in training_jobs.items()
        if job_info.get('status') in finished_statuses
    ]

    for job_id in jobs_to_remove:
        del training_jobs[job_id]

    if jobs_to_remove:
        logger.info(f"Cleaned up {len(jobs_to_remove)} finished training job(s)")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def array_to_float_list(array: np.ndarray) -> List[float]:
    """Convert a numpy array to a list of floats (for JSON serialization)."""
    return [float(val) for val in np.asarray(array).flatten()]


def network_summary(network_id: str) -> Dict[str, Any]:
    """Metadata of an in-memory network, without its parameters."""
    info = active_networks[network_id]
    return {
        'network_id': network_id,
        'architecture': info['architecture'],
        'activation': info['activation'],
        'trained': info['trained'],
        'last_cost': info['last_cost'],
        'epochs_trained': len(info['cost_history'])
    }


def parse_examples(raw_examples: Any) -> List[TrainingExample]:
    """
    Convert the JSON examples of a training request.

    Each example is either ``{'input': [...], 'target': [...]}`` or a two
    element list ``[input, target]``.

    Raises:
        ValueError: If the examples are missing or malformed
    """
    if not isinstance(raw_examples, list) or not raw_examples:
        raise ValueError('examples must be a non-empty list')

    examples = []
    for index, raw in enumerate(raw_examples):
        if isinstance(raw, dict) and 'input' in raw and 'target' in raw:
            values, target = raw['input'], raw['target']
        elif isinstance(raw, (list, tuple)) and len(raw) == 2:
            values, target = raw
        else:
            raise ValueError(f'example {index} must have an input and a target')
        examples.append(TrainingExample(values, target))
    return examples


def create_cost_plot(cost_history: List[float], title: str) -> str:
    """
    Create a base64-encoded PNG plot of the mean cost per epoch.

    Args:
        cost_history: Mean cost of every epoch trained so far
        title: Plot title

    Returns:
        Base64-encoded PNG image string
    """
    plt.figure(figsize=(5, 3))
    plt.plot(range(1, len(cost_history) + 1), cost_history)
    plt.title(title)
    plt.xlabel('Epoch')
    plt.ylabel('Mean cost')
    plt.grid(True, alpha=0.3)

    # Save image to a bytes buffer instead of a file
    buffer = BytesIO()
    plt.savefig(buffer, format='png', bbox_inches='tight')
    buffer.seek(0)
    img_base64 = base64.b64encode(buffer.getvalue()).decode('utf-8')
    plt.close()

    return img_base64


def validate_training_parameters(data: Dict[str, Any]) -> Tuple[int, float, float]:
    """
    Read and validate epochs, learning rate and momentum of a training request.

    Raises:
        ValueError: If a parameter is out of range
    """
    epochs = data.get('epochs', DEFAULT_EPOCHS)
    learning_rate = data.get('learning_rate', DEFAULT_LEARNING_RATE)
    momentum = data.get('momentum', DEFAULT_MOMENTUM)

    if isinstance(epochs, bool) or not isinstance(epochs, int) or epochs < 1:
        raise ValueError('epochs must be a positive integer')
    if isinstance(learning_rate, bool) or not isinstance(learning_rate, (int, float)) \
            or learning_rate <= 0:
        raise ValueError('learning_rate must be a positive number')
    if isinstance(momentum, bool) or not isinstance(momentum, (int, float)) \
            or not 0 <= momentum < 1:
        raise ValueError('momentum must be a number in [0, 1)')

    return epochs, float(learning_rate), float(momentum)


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.route('/api/status', methods=['GET'])
def get_status():
    """
    Return server status and statistics.

    Returns counts of active networks and training jobs that are
    currently in progress (status='pending' or 'training').
    """
    active_statuses = ('pending', 'training')
    active_training = sum(
        1 for job in training_jobs.values()
        if job.get('status') in active_statuses
    )

    return jsonify({
        'status': 'online',
        'active_networks': len(active_networks),
        'training_jobs': active_training
    }), 200


@app.route('/api/networks', methods=['POST'])
def create_network():
    """
    Create a new neural network.

    Request body (optional):
        {
            'layer_sizes': [2, 3, 1],
            'activation': 'sigmoid',
            'seed': 42
        }

    Returns:
        JSON with network_id, architecture, and status
    """
    data = request.get_json(silent=True) or {}
    layer_sizes = data.get('layer_sizes', DEFAULT_LAYER_SIZES)
    activation = data.get('activation', DEFAULT_ACTIVATION)
    seed = data.get('seed')

    # Validate: need at least input and output layers
    if not isinstance(layer_sizes, list) or len(layer_sizes) < 2 \
            or not all(isinstance(size, int) and not isinstance(size, bool)
                       for size in layer_sizes):
        logger.warning(f"Invalid architecture requested: {layer_sizes}")
        return jsonify({
            'error': 'Invalid architecture. Must have at least 2 integer layer sizes.'
        }), 400

    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int) or seed < 0):
        logger.warning(f"Invalid seed requested: {seed!r}")
        return jsonify({'error': 'seed must be a non-negative integer'}), 400

    try:
        net = build_network(layer_sizes, activation=activation, seed=seed)
    except ValueError as e:
        logger.warning(f"Rejected network layout {layer_sizes}: {e}")
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception(f"Error creating network: {e}")
        return jsonify({'error': f'Failed to create network: {str(e)}'}), 500

    network_id = str(uuid.uuid4())
    active_networks[network_id] = {
        'network': net,
        'architecture': layer_sizes,
        'activation': net.first_layer.activation.name,
        'trained': False,
        'last_cost': None,
        'cost_history': []
    }

    logger.info(f"Created network {network_id} with architecture {layer_sizes}")

    return jsonify({
        'network_id': network_id,
        'architecture': layer_sizes,
        'activation': net.first_layer.activation.name,
        'status': 'created'
    }), 201


@app.route('/api/networks', methods=['GET'])
def list_networks():
    """List all networks currently held in memory."""
    networks = [network_summary(nid) for nid in active_networks]
    logger.debug(f"Listing networks: {len(networks)} in memory")
    return jsonify({'networks': networks}), 200


@app.route('/api/networks/<network_id>', methods=['GET'])
def get_network(network_id: str):
    """Return metadata and the current weights and biases of every layer."""
    if network_id not in active_networks:
        logger.warning(f"Details requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    net = active_networks[network_id]['network']
    summary = network_summary(network_id)
    summary['layers'] = [
        {
            'inputs': layer.inputs,
            'outputs': layer.outputs,
            'activation': layer.activation.name,
            'weights': layer.weights.tolist(),
            'biases': array_to_float_list(layer.biases)
        }
        for layer in net.layers
    ]
    return jsonify(summary), 200


@app.route('/api/networks/<network_id>', methods=['DELETE'])
def delete_network_endpoint(network_id: str):
    """Delete a network from memory."""
    if network_id not in active_networks:
        logger.warning(f"Delete attempted for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    del active_networks[network_id]
    logger.info(f"Deleted network {network_id}")

    return jsonify({'network_id': network_id, 'deleted': True}), 200


@app.route('/api/networks', methods=['DELETE'])
def delete_all_networks():
    """Delete all networks from memory."""
    deleted_count = len(active_networks)
    active_networks.clear()

    logger.info(f"Deleted all networks: {deleted_count} total")

    return jsonify({
        'deleted_count': deleted_count,
        'message': f'Successfully deleted {deleted_count} network(s)'
    }), 200


@app.route('/api/networks/<network_id>/query', methods=['POST'])
def query_network(network_id: str):
    """
    Feed an input vector through a network.

    Request body:
        {'input': [0.0, 1.0]}

    Returns:
        JSON with the network output
    """
    if network_id not in active_networks:
        logger.warning(f"Query requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    if 'input' not in data:
        return jsonify({'error': 'input is required'}), 400

    net = active_networks[network_id]['network']
    try:
        output = net.query(data['input'])
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'network_id': network_id,
        'output': array_to_float_list(output)
    }), 200


@app.route('/api/networks/<network_id>/train', methods=['POST'])
def train_network(network_id: str):
    """
    Train a network on the examples in the request body.

    Request body:
        {
            'examples': [{'input': [0, 1], 'target': [1]}, ...],
            'epochs': 100,
            'learning_rate': 0.5,
            'momentum': 0.0,
            'background': true
        }

    With ``background`` (the default) training runs as a background task and
    the response carries a job id; progress is pushed over WebSockets.
    Otherwise the network is trained before responding.

    Returns:
        JSON with job_id (202) or the final mean cost (200)
    """
    if network_id not in active_networks:
        logger.warning(f"Training requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    try:
        epochs, learning_rate, momentum = validate_training_parameters(data)
        examples = parse_examples(data.get('examples'))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    net = active_networks[network_id]['network']
    input_size = net.first_layer.inputs
    output_size = net.last_layer.outputs
    for index, example in enumerate(examples):
        if example.input.shape[0] != input_size or example.target.shape[0] != output_size:
            return jsonify({
                'error': f'example {index} must have {input_size} input value(s) '
                         f'and {output_size} target value(s)'
            }), 400

    cleanup_finished_training_jobs()

    job_id = str(uuid.uuid4())
    training_jobs[job_id] = {
        'network_id': network_id,
        'status': 'pending',
        'progress': 0,
        'epochs': epochs
    }

    logger.info(
        f"Created training job {job_id} for network {network_id}: "
        f"epochs={epochs}, examples={len(examples)}, lr={learning_rate}, "
        f"momentum={momentum}"
    )

    if not data.get('background', True):
        train_network_task(network_id, job_id, examples, epochs, learning_rate, momentum)
        job = training_jobs[job_id]
        if job['status'] == 'failed':
            return jsonify({'job_id': job_id, 'error': job.get('error')}), 500
        return jsonify({
            'job_id': job_id,
            'network_id': network_id,
            'status': 'completed',
            'mean_cost': job['mean_cost']
        }), 200

    # Run training in background so we can return immediately
    socketio.start_background_task(
        train_network_task,
        network_id, job_id, examples, epochs, learning_rate, momentum
    )

    return jsonify({
        'job_id': job_id,
        'network_id': network_id,
        'status': 'training_started'
    }), 202


def train_network_task(
    network_id: str,
    job_id: str,
    examples: List[TrainingExample],
    epochs: int,
    learning_rate: float,
    momentum: float
) -> None:
    """
    Train a network and record the outcome on its job.

    Sends progress updates via WebSocket at the end of every epoch.
    """
    info = active_networks[network_id]
    net = info['network']

    def on_example_complete(data: Dict[str, Any]) -> None:
        """Called after each training example; reports once per epoch."""
        if data['example'] == data['total_examples']:
            progress = (data['epoch'] / data['total_epochs']) * 100

            training_jobs[job_id]['status'] = 'training'
            training_jobs[job_id]['progress'] = progress
            training_jobs[job_id]['mean_cost'] = data['mean_cost']
            info['cost_history'].append(data['mean_cost'])

            # Send update to connected clients via WebSocket
            socketio.emit('training_update', {
                'job_id': job_id,
                'network_id': network_id,
                'epoch': data['epoch'],
                'total_epochs': data['total_epochs'],
                'mean_cost': data['mean_cost'],
                'progress': progress
            })

        # Let gevent serve other requests between examples
        gevent.sleep(0)

    try:
        logger.info(f"Starting training for job {job_id}")

        mean_cost = net.train(
            examples,
            epochs,
            learning_rate,
            momentum,
            callback=on_example_complete
        )

        info['trained'] = True
        info['last_cost'] = mean_cost

        training_jobs[job_id]['status'] = 'completed'
        training_jobs[job_id]['mean_cost'] = mean_cost
        training_jobs[job_id]['progress'] = 100

        logger.info(f"Training completed for job {job_id}: mean cost {mean_cost:.6f}")

        # Notify clients that training is complete
        socketio.emit('training_complete', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'completed',
            'mean_cost': mean_cost,
            'progress': 100
        })
        gevent.sleep(0)

    except Exception as e:
        logger.exception(f"Training failed for job {job_id}: {e}")

        training_jobs[job_id]['status'] = 'failed'
        training_jobs[job_id]['error'] = str(e)

        socketio.emit('training_error', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'failed',
            'error': str(e)
        })
        gevent.sleep(0)


@app.route('/api/training/<job_id>', methods=['GET'])
def get_training_status(job_id: str):
    """Get the current status of a training job."""
    if job_id in training_jobs:
        return jsonify(training_jobs[job_id]), 200

    logger.warning(f"Status requested for non-existent job: {job_id}")
    return jsonify({'error': 'Training job not found'}), 404


@app.route('/api/networks/<network_id>/cost_history', methods=['GET'])
def get_cost_history(network_id: str):
    """
    Return the mean cost per trained epoch and a plot of it.

    Returns JSON with the cost history and a base64-encoded PNG.
    """
    if network_id not in active_networks:
        logger.warning(f"Cost history requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    cost_history = active_networks[network_id]['cost_history']
    if not cost_history:
        return jsonify({'error': 'Network has not been trained yet'}), 404

    return jsonify({
        'network_id': network_id,
        'cost_history': cost_history,
        'image_data': create_cost_plot(
            cost_history,
            f"Network {active_networks[network_id]['architecture']}"
        )
    }), 200


# ============================================================================
# SERVER STARTUP
# ============================================================================

if __name__ == '__main__':
    # Check if running in cloud environment (Railway, etc.)
    is_cloud = bool(os.environ.get('RAILWAY_STATIC_URL') or os.environ.get('PORT'))
    port = int(os.environ.get('PORT', 8000))

    if is_cloud:
        logger.info(f"Starting server in production mode on port {port}")
    else:
        logger.info(f"Starting server at http://localhost:{port}/")

    # Start the server with WebSocket support
    try:
        socketio.run(
            app,
            host='0.0.0.0',
            port=port,
            debug=not is_cloud,
            use_reloader=False,
            allow_unsafe_werkzeug=True
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use.")
            logger.info("You can use: pkill -f 'neuranet.api_server'")
            sys.exit(1)
        else:
            raise
