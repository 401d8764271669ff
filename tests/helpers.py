"""Payload builders shared by the test modules."""


def budpay_payload(reference='BUD_REF_1', amount='2500', status='success', notify_type='successful', **extra):
    data = {
        'reference': reference,
        'amount': amount,
        'currency': 'NGN',
        'status': status,
        'paid_at': '2024-05-01T10:00:00Z',
        'narration': 'Transfer',
        'bankname': 'Wema Bank',
        'sessionid': 'SESSION1',
        'customer': {'email': 'payer@example.com'},
    }
    data.update(extra)
    return {'notifyType': notify_type, 'data': data}
