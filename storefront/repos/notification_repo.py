from sqlalchemy.orm import Session
from storefront.data.models.notification import NotificationModel


class NotificationRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_notification(self, notification: NotificationModel) -> NotificationModel:
        self.db.add(notification)
        self.db.flush()
        return notification
