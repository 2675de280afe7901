from scholarhub.models.user import User
from scholarhub.models.scholarship import Scholarship, SavedScholarship
from scholarhub.models.application import Application
from scholarhub.models.document import Document
from scholarhub.models.notification import Notification

__all__ = ["User", "Scholarship", "SavedScholarship", "Application", "Document", "Notification"]
