"""Starter payloads for common automation-platform integrations"""

WEBHOOK_TEMPLATES = {
    "discord_notification": {
        "name": "Notificação Discord",
        "description": "Enviar notificações para canal do Discord",
        "events": ["crush_added", "stage_changed", "conversation_started"],
        "payload_example": {
            "username": "Crystal.AI",
            "content": "Nova paquera adicionada ao pipeline! 💕",
            "embeds": [{
                "title": "Crystal.AI - Atualização",
                "description": "Sua paquera progrediu no pipeline",
                "color": 15418782,
            }],
        },
    },
    "slack_notification": {
        "name": "Notificação Slack",
        "description": "Enviar mensagens para canal do Slack",
        "events": ["crush_added", "stage_changed", "relationship_milestone"],
        "payload_example": {
            "text": "Crystal.AI - Nova atualização",
            "blocks": [{
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": "*Nova paquera adicionada!* 💕\nSua conquista está progredindo bem!",
                },
            }],
        },
    },
    "email_automation": {
        "name": "Automação de Email",
        "description": "Enviar emails automáticos baseados em eventos",
        "events": ["stage_changed", "insight_generated", "reminder_scheduled"],
        "payload_example": {
            "to": "user@example.com",
            "subject": "Crystal.AI - Atualização do seu pipeline",
            "body": "Sua paquera progrediu para o próximo estágio!",
        },
    },
    "calendar_integration": {
        "name": "Integração com Calendário",
        "description": "Criar eventos no calendário para encontros",
        "events": ["stage_changed"],
        "conditions": {"stage": "Encontro"},
        "payload_example": {
            "title": "Encontro com {crush_name}",
            "description": "Encontro marcado através do Crystal.AI",
            "start_time": "{start_time}",
            "duration": 120,  # minutes
        },
    },
    "crm_update": {
        "name": "Atualização CRM",
        "description": "Sincronizar dados com sistema CRM",
        "events": ["crush_added", "stage_changed", "conversation_started"],
        "payload_example": {
            "contact": {
                "name": "{crush_name}",
                "stage": "{current_stage}",
                "last_interaction": "{last_interaction}",
                "source": "Crystal.AI",
            },
        },
    },
}
