import logging

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from flask_jwt_extended import JWTManager, jwt_required, set_access_cookies, unset_jwt_cookies

import config
from models import db, User
from auth import (register_user, login_user, get_current_user, roles_required,
                  set_user_roles, seed_roles, seed_admin)
from contact_service import (ContactSubmission, ContactValidationError, ContactNotFoundError,
                             search_contacts, get_contact, create_contact, update_contact,
                             delete_contact)
import exporter

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)

app = Flask(__name__)

# --- Config ---
app.config['SECRET_KEY'] = config.SECRET_KEY
app.config['SQLALCHEMY_DATABASE_URI'] = config.DATABASE_URL
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['JWT_SECRET_KEY'] = config.JWT_SECRET_KEY
# Header for API clients, cookie for browsers (cookie mutations need the CSRF header)
app.config['JWT_TOKEN_LOCATION'] = ['headers', 'cookies']
app.config['JWT_COOKIE_CSRF_PROTECT'] = True
app.config['JWT_COOKIE_SECURE'] = config.JWT_COOKIE_SECURE

CORS(app, supports_credentials=True, origins=config.CORS_ORIGINS)

db.init_app(app)
jwt = JWTManager(app)


def seed_database():
    """Built-in roles always, the default admin when enabled. Failures are logged only."""
    try:
        seed_roles()
        if config.SEED_DEFAULT_DATA:
            seed_admin(config.SEED_ADMIN_EMAIL, config.SEED_ADMIN_PASSWORD)
    except Exception:
        db.session.rollback()
        logger.exception('An error occurred while seeding the database.')


# Tables and seed data on startup
with app.app_context():
    db.create_all()
    seed_database()


# --- Error handlers ---
@jwt.invalid_token_loader
def invalid_token_callback(error):
    return jsonify({'error': 'Invalid token', 'message': str(error)}), 422


@jwt.unauthorized_loader
def missing_token_callback(error):
    return jsonify({'error': 'Authorization required', 'message': str(error)}), 401


@jwt.expired_token_loader
def expired_token_callback(jwt_header, jwt_payload):
    return jsonify({'error': 'Token has expired'}), 401


@app.errorhandler(ContactValidationError)
def handle_validation_error(error):
    return jsonify({'error': 'Validation failed', 'fields': error.errors}), 400


@app.errorhandler(ContactNotFoundError)
def handle_contact_not_found(error):
    return jsonify({'error': str(error)}), 404


@app.errorhandler(404)
def handle_not_found(error):
    return jsonify({'error': 'Not found'}), 404


# --- Helpers ---
def read_submission():
    # JSON bodies or form posts with repeated keys
    if request.is_json:
        return ContactSubmission.from_json(request.get_json(silent=True))
    return ContactSubmission.from_form(request.form)


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# --- Auth routes ---
@app.route('/auth/register', methods=['POST'])
def api_register():
    data = json_body()
    user_dict, error = register_user(data.get('email'), data.get('password'),
                                     data.get('first_name'), data.get('last_name'))
    if error:
        return jsonify({'error': error}), 400
    return jsonify({'user': user_dict, 'message': 'User registered successfully'}), 201


@app.route('/auth/login', methods=['POST'])
def api_login():
    data = json_body()
    result, error = login_user(data.get('email'), data.get('password'))
    if error:
        return jsonify({'error': error}), 401
    response = jsonify(result)
    set_access_cookies(response, result['access_token'])
    return response, 200


@app.route('/auth/logout', methods=['POST'])
def api_logout():
    response = jsonify({'message': 'Logged out'})
    unset_jwt_cookies(response)
    return response, 200


@app.route('/auth/me', methods=['GET'])
@jwt_required()
def api_current_user():
    user = get_current_user()
    if not user:
        return jsonify({'error': 'User not found'}), 404
    return jsonify({'user': user.to_dict()}), 200


@app.route('/auth/users/<int:user_id>/roles', methods=['PUT'])
@roles_required('Admin')
def api_set_user_roles(user_id):
    user = db.get_or_404(User, user_id)
    roles = json_body().get('roles')
    if not isinstance(roles, list):
        return jsonify({'error': 'roles must be a list'}), 400
    error = set_user_roles(user, roles)
    if error:
        return jsonify({'error': error}), 400
    return jsonify({'user': user.to_dict()}), 200


# --- Contact routes ---
@app.route('/contacts', methods=['GET'])
@roles_required()
def list_contacts():
    contacts = search_contacts(request.args.get('searchString'))
    return jsonify([c.to_dict() for c in contacts])


@app.route('/contacts', methods=['POST'])
@roles_required('Admin', 'User')
def add_contact():
    contact = create_contact(read_submission())
    return jsonify(contact.to_dict()), 201


@app.route('/contacts/<int:id>', methods=['GET'])
@roles_required()
def contact_details(id):
    contact = get_contact(id)
    if contact is None:
        raise ContactNotFoundError(id)
    return jsonify(contact.to_dict())


@app.route('/contacts/<int:id>', methods=['PUT', 'POST'])
@roles_required('Admin', 'User')
def edit_contact(id):
    contact = update_contact(id, read_submission())
    return jsonify(contact.to_dict())


@app.route('/contacts/<int:id>', methods=['DELETE'])
@roles_required('Admin')
def remove_contact(id):
    delete_contact(id)
    return jsonify({'message': 'Deleted successfully'}), 200


# --- Exports ---
@app.route('/contacts/export/csv', methods=['GET'])
@roles_required()
def export_csv():
    contacts = search_contacts(request.args.get('searchString'))
    return send_file(exporter.export_csv(contacts), mimetype=exporter.CSV_MIMETYPE,
                     as_attachment=True, download_name=exporter.CSV_FILENAME)


@app.route('/contacts/export/excel', methods=['GET'])
@roles_required()
def export_excel():
    contacts = search_contacts(request.args.get('searchString'))
    return send_file(exporter.export_excel(contacts), mimetype=exporter.EXCEL_MIMETYPE,
                     as_attachment=True, download_name=exporter.EXCEL_FILENAME)


@app.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok'})


if __name__ == '__main__':
    app.run(debug=config.DEBUG, port=config.PORT)
