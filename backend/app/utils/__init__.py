from .errors import error_response
from .email import send_email
from .sms import format_booking_sms, send_sms
