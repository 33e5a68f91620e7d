"""Push notifications for join-request activity (Firebase Cloud Messaging)."""
from typing import Optional

from firebase_admin import messaging, exceptions as firebase_exceptions

from services.firebase_app import initialize_firebase_admin
from utils.logger import get_logger

logger = get_logger(__name__)


def send_notification(
    fcm_token: Optional[str],
    title: str,
    body: str,
    data: Optional[dict] = None
) -> bool:
    """Send a push notification to one device. Never raises; returns whether it was sent."""
    if not fcm_token:
        return False
    if not initialize_firebase_admin():
        logger.warning("Firebase Admin is not initialized; notification '%s' skipped", title)
        return False

    try:
        message = messaging.Message(
            notification=messaging.Notification(
                title=title,
                body=body,
            ),
            data=data or {},
            token=fcm_token,
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        badge=1,
                        sound="default",
                    ),
                ),
            ),
            android=messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(
                    sound="default",
                    channel_id="high_importance_channel",
                ),
            ),
        )

        response = messaging.send(message)
        logger.info("Notification sent: %s", response)
        return True
    except (firebase_exceptions.FirebaseError, ValueError) as e:
        logger.warning("Error sending notification: %s", e)
        return False


def notify_request_created(owner, requester, trip, request) -> bool:
    """Tell the trip owner someone asked to join."""
    name = (requester.full_name or requester.username or "Someone") if requester else "Someone"
    return send_notification(
        fcm_token=owner.fcm_token if owner else None,
        title="New join request",
        body=f"{name} wants to join your trip: {trip.title}",
        data={
            "type": "trip_request",
            "request_id": str(request.id),
            "trip_id": str(trip.id),
        },
    )


def notify_request_answered(requester, trip, request) -> bool:
    """Tell the requester their request was approved or rejected."""
    status = request.status.value
    return send_notification(
        fcm_token=requester.fcm_token if requester else None,
        title=f"Request {status}",
        body=f"Your request to join {trip.title} has been {status}",
        data={
            "type": "trip_request_status",
            "request_id": str(request.id),
            "trip_id": str(trip.id),
            "status": status,
        },
    )
