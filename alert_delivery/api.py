import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider

from .config import Settings, get_settings
from .errors import NotFound, UnknownChannel
from .models import (
    Alert,
    AlertStatus,
    DeliveryType,
    Preference,
    Severity,
    Team,
    User,
    UserRole,
    VisibilityType,
    to_local_naive,
)
from .preferences import PreferenceTracker
from .system import AlertingSystem

logger = logging.getLogger(__name__)


class AlertingJSONProvider(DefaultJSONProvider):
    @staticmethod
    def default(obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return DefaultJSONProvider.default(obj)


# ===== SERIALIZATION =====
def _parse_time(value, required: bool = False) -> Optional[datetime]:
    if value is None or value == "":
        if required:
            raise ValueError("A timestamp is required")
        return None
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO 8601 timestamp, got {value!r}")
    return to_local_naive(datetime.fromisoformat(value))

def _alert_to_dict(system: AlertingSystem, alert: Alert) -> dict:
    team_ids, user_ids = system.alert_manager.targets_of(alert.id)
    return {
        'id': alert.id,
        'title': alert.title,
        'message': alert.message,
        'severity': alert.severity,
        'delivery_type': alert.delivery_type,
        'visibility_type': alert.visibility_type,
        'target_team_ids': team_ids,
        'target_user_ids': user_ids,
        'status': alert.status,
        'is_active': alert.is_active(),
        'start_time': alert.start_time,
        'expiry_time': alert.expiry_time,
        'reminder_enabled': alert.reminder_enabled,
        'reminder_frequency_minutes': alert.reminder_frequency_minutes,
        'created_by': alert.created_by,
        'created_at': alert.created_at,
        'updated_at': alert.updated_at,
    }

def _user_to_dict(user: User) -> dict:
    return {'id': user.id, 'email': user.email, 'name': user.name,
            'role': user.role, 'team_id': user.team_id}

def _team_to_dict(team: Team) -> dict:
    return {'id': team.id, 'name': team.name, 'description': team.description}

def _preference_to_dict(preference: Optional[Preference]) -> dict:
    if preference is None:
        return {'user_status': PreferenceTracker.status_of(None), 'is_read': False,
                'snoozed_until': None, 'last_reminded_at': None}
    return {
        'user_status': PreferenceTracker.status_of(preference),
        'is_read': preference.is_read,
        'snoozed_until': preference.snoozed_until,
        'last_reminded_at': preference.last_reminded_at,
    }


def create_app(system: Optional[AlertingSystem] = None,
               settings: Optional[Settings] = None) -> Flask:
    settings = settings or (system.settings if system else get_settings())
    system = system or AlertingSystem(settings)

    app = Flask(__name__)
    app.json = AlertingJSONProvider(app)
    app.config['ALERTING_SYSTEM'] = system

    # ===== ERROR HANDLERS =====
    @app.errorhandler(NotFound)
    def handle_not_found(e):
        return jsonify({'error': str(e)}), 404

    @app.errorhandler(UnknownChannel)
    def handle_unknown_channel(e):
        logger.error("Alert request used an unregistered channel: %s", e.delivery_type)
        return jsonify({'error': str(e)}), 422

    @app.errorhandler(ValueError)
    def handle_bad_request(e):
        return jsonify({'error': str(e)}), 400

    # ===== ADMIN: ALERTS =====
    @app.route('/admin/alerts', methods=['POST'])
    def create_alert():
        data = request.get_json(silent=True) or {}
        required_fields = ['title', 'message', 'severity', 'created_by', 'visibility_type']
        for field in required_fields:
            if field not in data:
                return jsonify({'error': f'Missing required field: {field}'}), 400

        kwargs = dict(
            title=data['title'],
            message=data['message'],
            severity=Severity(data['severity']),
            delivery_type=DeliveryType(data.get('delivery_type', DeliveryType.IN_APP.value)),
            visibility_type=VisibilityType(data['visibility_type']),
            created_by=data['created_by'],
            start_time=_parse_time(data.get('start_time')),
            expiry_time=_parse_time(data.get('expiry_time')),
            reminder_enabled=bool(data.get('reminder_enabled', True)),
            target_team_ids=data.get('target_team_ids', []),
            target_user_ids=data.get('target_user_ids', []),
        )
        if 'reminder_frequency_minutes' in data:
            kwargs['reminder_frequency_minutes'] = int(data['reminder_frequency_minutes'])

        alert, records = system.create_alert(**kwargs)
        body = _alert_to_dict(system, alert)
        body['delivered_to'] = [record.user_id for record in records]
        return jsonify(body), 201

    @app.route('/admin/alerts', methods=['GET'])
    def list_alerts():
        filters = {}
        if request.args.get('severity'):
            filters['severity'] = Severity(request.args['severity'])
        if request.args.get('status'):
            filters['status'] = AlertStatus(request.args['status'])
        if request.args.get('created_by'):
            filters['created_by'] = request.args['created_by']

        alerts = system.alert_manager.list_alerts(filters)
        return jsonify([_alert_to_dict(system, alert) for alert in alerts])

    @app.route('/admin/alerts/<alert_id>', methods=['GET'])
    def get_alert(alert_id):
        alert = system.alert_manager.get_alert(alert_id)
        body = _alert_to_dict(system, alert)
        deliveries = system.delivery_repository.find_by_alert(alert_id)
        body['deliveries'] = len(deliveries)
        body['reminders'] = sum(1 for d in deliveries if d.is_reminder)
        return jsonify(body)

    @app.route('/admin/alerts/<alert_id>', methods=['PUT'])
    def update_alert(alert_id):
        data = request.get_json(silent=True) or {}
        updates = {}

        if 'title' in data:
            updates['title'] = data['title']
        if 'message' in data:
            updates['message'] = data['message']
        if 'severity' in data:
            updates['severity'] = Severity(data['severity'])
        if 'delivery_type' in data:
            updates['delivery_type'] = DeliveryType(data['delivery_type'])
        if 'status' in data:
            updates['status'] = AlertStatus(data['status'])
        if 'reminder_enabled' in data:
            updates['reminder_enabled'] = bool(data['reminder_enabled'])
        if 'reminder_frequency_minutes' in data:
            updates['reminder_frequency_minutes'] = int(data['reminder_frequency_minutes'])
        if 'start_time' in data:
            updates['start_time'] = _parse_time(data['start_time'], required=True)
        if 'expiry_time' in data:
            updates['expiry_time'] = _parse_time(data['expiry_time'])

        alert = system.update_alert(alert_id, **updates)
        return jsonify(_alert_to_dict(system, alert))

    @app.route('/admin/alerts/<alert_id>/deliver', methods=['POST'])
    def deliver_alert(alert_id):
        records = system.deliver_alert(alert_id)
        return jsonify({'id': alert_id, 'delivered_to': [record.user_id for record in records]})

    @app.route('/admin/alerts/<alert_id>/archive', methods=['POST'])
    def archive_alert(alert_id):
        system.alert_manager.archive_alert(alert_id)
        return jsonify({'message': 'Alert archived successfully'})

    @app.route('/admin/alerts/<alert_id>', methods=['DELETE'])
    def delete_alert(alert_id):
        if not system.alert_manager.delete_alert(alert_id):
            raise NotFound("alert", alert_id)
        return jsonify({'message': 'Alert deleted'})

    # ===== ADMIN: ORGANIZATION =====
    @app.route('/admin/teams', methods=['POST'])
    def create_team():
        data = request.get_json(silent=True) or {}
        if not data.get('name'):
            return jsonify({'error': 'Missing required field: name'}), 400
        team = system.add_team(data['name'], data.get('description', ''))
        return jsonify(_team_to_dict(team)), 201

    @app.route('/admin/teams', methods=['GET'])
    def list_teams():
        return jsonify([_team_to_dict(team) for team in system.team_repository.find_all()])

    @app.route('/admin/users', methods=['POST'])
    def create_user():
        data = request.get_json(silent=True) or {}
        for field in ['email', 'name']:
            if field not in data:
                return jsonify({'error': f'Missing required field: {field}'}), 400
        user = system.add_user(
            email=data['email'],
            name=data['name'],
            role=UserRole(data.get('role', UserRole.MEMBER.value)),
            team_id=data.get('team_id'),
        )
        return jsonify(_user_to_dict(user)), 201

    @app.route('/admin/users', methods=['GET'])
    def list_users():
        return jsonify([_user_to_dict(user) for user in system.user_repository.find_all()])

    # ===== USERS =====
    @app.route('/users/<user_id>/alerts', methods=['GET'])
    def get_user_alerts(user_id):
        alert_list = []
        for alert, preference in system.get_user_alerts(user_id):
            entry = {
                'id': alert.id,
                'title': alert.title,
                'message': alert.message,
                'severity': alert.severity,
                'start_time': alert.start_time,
                'expiry_time': alert.expiry_time,
            }
            entry.update(_preference_to_dict(preference))
            alert_list.append(entry)
        return jsonify(alert_list)

    @app.route('/users/<user_id>/alerts/<alert_id>/read', methods=['POST'])
    def mark_alert_read(user_id, alert_id):
        preference = system.mark_alert_read(user_id, alert_id)
        return jsonify({'message': 'Alert marked as read', 'updated': preference is not None})

    @app.route('/users/<user_id>/alerts/<alert_id>/snooze', methods=['POST'])
    def snooze_alert(user_id, alert_id):
        preference = system.snooze_alert(user_id, alert_id)
        return jsonify({
            'message': 'Alert snoozed until end of day',
            'updated': preference is not None,
            'snoozed_until': preference.snoozed_until if preference else None,
        })

    # ===== SYSTEM =====
    @app.route('/analytics', methods=['GET'])
    def get_analytics():
        analytics = system.get_analytics()
        return jsonify({
            'total_alerts': analytics.total_alerts,
            'active_alerts': analytics.active_alerts,
            'archived_alerts': analytics.archived_alerts,
            'alerts_by_severity': {
                severity.value: count
                for severity, count in analytics.alerts_by_severity.items()
            },
            'delivery_stats': analytics.delivery_stats,
            'snoozed_by_alert': analytics.snoozed_by_alert,
        })

    @app.route('/system/process-reminders', methods=['POST'])
    def process_reminders():
        result = system.process_reminders()
        return jsonify(result.to_dict())

    @app.route('/health', methods=['GET'])
    def health_check():
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.now(),
            'reminder_timer_running': system.timer.is_running,
            'channels': system.channels.types(),
        })

    return app


def main():
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    system = AlertingSystem(settings)
    app = create_app(system)

    if settings.START_REMINDER_TIMER:
        system.start_reminders()

    logger.info("Starting %s on http://%s:%d", settings.APP_NAME, settings.HOST, settings.PORT)
    try:
        app.run(debug=settings.DEBUG, host=settings.HOST, port=settings.PORT, use_reloader=False)
    finally:
        system.stop_reminders()


if __name__ == '__main__':
    main()
