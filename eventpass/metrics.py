from prometheus_client import Counter, Histogram

# Payment session creation
PAYMENT_SESSIONS = Counter("eventpass_payment_sessions_total", "Hosted payment sessions requested", ["result"])
GATEWAY_LATENCY = Histogram("eventpass_gateway_call_seconds", "Latency of payment gateway calls", ["step"])

# Webhook handling
WEBHOOK_EVENTS = Counter("eventpass_webhook_events_total", "Payment webhooks received", ["outcome"])
PAYMENT_SUCCESS = Counter("eventpass_payments_success_total", "Successful payments applied", ["provider"])
PAYMENT_FAILURE = Counter("eventpass_payments_failure_total", "Failed payments applied", ["provider"])

# Ticket delivery
TICKETS_DISPATCHED = Counter("eventpass_tickets_total", "Ticket dispatch attempts", ["result", "source"])
