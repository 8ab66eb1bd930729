from flask import Blueprint, jsonify, current_app

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the RzzRzz poker server!'})


@main.route('/health')
def health():
    return jsonify({'status': 'ok'})


@main.route('/api/version')
def version():
    return jsonify(current_app.extensions['version_info'].full())


@main.route('/api/version/short')
def version_short():
    return jsonify(current_app.extensions['version_info'].short())
