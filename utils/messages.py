"""
Centralized French user-facing messages.
All error and success text returned by the API comes from here.
"""

MESSAGES = {
    # Success messages
    'member_created': 'Membre créé avec succès',
    'reservation_created': 'Réservation créée avec succès',
    'reservation_requested': 'Demande de réservation enregistrée, en attente de confirmation',
    'reservation_confirmed': 'Réservation confirmée',
    'reservation_cancelled': 'Réservation annulée',
    'reservation_checked_in': 'Arrivée enregistrée',
    'reservation_checked_out': 'Départ enregistré',
    'reservation_completed': 'Réservation terminée',
    'invoice_created': 'Facture créée avec succès',
    'invoice_sent': 'Facture envoyée',
    'invoice_paid': 'Facture marquée comme payée',
    'invoice_cancelled': 'Facture annulée',
    'payment_processed': 'Paiement enregistré',
    'payment_refunded': 'Remboursement enregistré',
    'stock_adjusted': 'Stock mis à jour',
    'maintenance_created': 'Demande de maintenance créée',
    'maintenance_assigned': 'Demande de maintenance assignée',
    'maintenance_completed': 'Maintenance terminée',
    'maintenance_cancelled': 'Demande de maintenance annulée',
    'promo_code_created': 'Code promo créé',
    'promo_code_valid': 'Code promo valide',
    'promo_code_deactivated': 'Code promo désactivé',

    # Domain errors
    'invalid_interval': 'La date de fin doit être postérieure à la date de début',
    'start_in_past': 'La date de début doit être dans le futur',
    'slot_conflict': "Cet espace n'est pas disponible pour ces dates",
    'space_unavailable': "Cet espace n'est pas disponible",
    'capacity_exceeded': 'La capacité maximale de cet espace est de {capacity} personne(s)',
    'invalid_transition': 'Transition impossible de « {current} » vers « {target} »',
    'already_checked_in': "L'arrivée a déjà été enregistrée pour cette réservation",
    'not_confirmed': "La réservation doit être confirmée avant l'arrivée",
    'not_checked_in': "L'arrivée doit être enregistrée avant le départ",
    'already_checked_out': 'Le départ a déjà été enregistré pour cette réservation',
    'invalid_line_item': 'Ligne de facture invalide : {detail}',
    'not_payable': "La facture n'est pas payable dans l'état « {status} »",
    'invalid_amount': 'Le montant doit être strictement positif',
    'refund_exceeds_payment': 'Le remboursement dépasse le montant remboursable ({remaining})',
    'negative_stock': 'Quantité insuffisante : stock actuel {quantity}, ajustement {delta}',
    'already_assigned': 'Cette demande de maintenance a déjà été prise en charge',
    'member_not_active': "Le membre n'est pas actif (statut : {status})",
    'invoice_integrity': 'Les totaux de la facture ne sont pas cohérents',
    'already_invoiced': 'Cette réservation est déjà facturée (facture {invoice_number})',
    'promo_code_rejected': 'Ce code promo ne peut pas être utilisé',
    'promo_code_exhausted': "Ce code promo a atteint sa limite d'utilisation",
    'promo_code_already_used': 'Ce code promo a déjà été utilisé par ce membre',
    'promo_code_below_minimum': 'Le montant minimum pour ce code promo est {minimum}',
    'not_found': '{entity} introuvable',
    'storage_busy': 'Le service est momentanément occupé, veuillez réessayer',

    # Validation messages
    'field_required': 'Le champ « {field} » est requis',
    'invalid_value': 'Valeur invalide pour « {field} »',
    'reason_required': "Le motif de l'ajustement est requis",
    'zero_adjustment': "Un ajustement de stock ne peut pas être nul",

    # Entity names
    'entity_reservation': 'Réservation',
    'entity_space': 'Espace',
    'entity_member': 'Membre',
    'entity_invoice': 'Facture',
    'entity_payment': 'Paiement',
    'entity_inventory_item': "Article d'inventaire",
    'entity_maintenance_request': 'Demande de maintenance',
    'entity_promo_code': 'Code promo',
}


def get_message(key: str, **kwargs) -> str:
    """
    Get a message by key with optional formatting.

    Args:
        key: Message key
        **kwargs: Format arguments

    Returns:
        Formatted message string, or the key itself if unknown
    """
    message = MESSAGES.get(key, key)
    if kwargs:
        try:
            return message.format(**kwargs)
        except (KeyError, IndexError):
            return message
    return message
