"""
Policy names shared by the classifier and the configuration validator.
"""

# ranking rule for observations at equal distance
DISTANCE_TIE_BREAKS = ('insertion', 'label')

# winner rule when several labels share the highest tally
VOTE_TIE_BREAKS = ('nearest', 'lexical')
