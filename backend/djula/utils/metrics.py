# /djula/utils/metrics.py

from prometheus_client import Counter, Histogram

# This file defines all Prometheus metrics used for application monitoring.
# Centralizing them here makes them easy to find and manage.

# Conversation metrics
message_counter = Counter('djula_messages_total', 'Inbound messages processed', ['status', 'message_type'])
turn_duration_histogram = Histogram('djula_turn_duration_seconds', 'Duration of one conversation turn')
intent_counter = Counter('djula_intents_total', 'Resolved intents', ['intent_type', 'source'])
action_counter = Counter('djula_actions_total', 'Dispatched actions', ['action_type'])
duplicate_delivery_counter = Counter('djula_duplicate_deliveries_total', 'Inbound deliveries dropped as duplicates')
session_transition_counter = Counter('djula_session_transitions_total', 'Session status transitions', ['status'])

# Collaborator and AI metrics
ai_requests_counter = Counter('djula_ai_requests_total', 'Total AI requests', ['model', 'status'])
collaborator_calls_counter = Counter('djula_collaborator_calls_total', 'Back-office calls', ['operation', 'status'])
database_operations_counter = Counter('djula_database_operations_total', 'Database operations', ['operation', 'status'])

# Channel metrics
outbound_messages_counter = Counter('djula_outbound_messages_total', 'Outbound WhatsApp sends', ['message_type', 'status'])
rate_limit_overflow_counter = Counter('djula_rate_limit_overflows_total', 'Sends over the per-customer soft limit')
webhook_signature_counter = Counter('djula_webhook_signature_verifications_total', 'Webhook signature verifications', ['status'])

# Performance Metrics
cache_operations = Counter('djula_cache_operations_total', 'Cache operations', ['operation', 'status'])
response_time_histogram = Histogram('djula_response_time_seconds', 'Response time for HTTP endpoints', ['endpoint'])
