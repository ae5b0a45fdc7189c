from flask import Blueprint, jsonify
import time

main = Blueprint('main', __name__)


@main.route('/', methods=['GET'])
def index():
    return jsonify({'name': 'trivia', 'api': '/api/games', 'socket_namespace': '/ws'})


@main.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'server_time': time.time()})
