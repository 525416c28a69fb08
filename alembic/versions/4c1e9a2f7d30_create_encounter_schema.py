"""create_encounter_schema

Revision ID: 4c1e9a2f7d30
Revises:
Create Date: 2026-10-19 12:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '4c1e9a2f7d30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column('id', sa.String(length=32), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'campaigns',
        _id(),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_campaigns'),
    )

    # Templates and sites share a shape: owned by a campaign, named.
    for table in ('characters', 'vehicles', 'sites'):
        op.create_table(
            table,
            _id(),
            sa.Column('campaign_id', sa.String(length=32), nullable=True),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(
                ['campaign_id'], ['campaigns.id'],
                name=f'fk_{table}_campaign_id_campaigns', ondelete='CASCADE',
            ),
            sa.PrimaryKeyConstraint('id', name=f'pk_{table}'),
        )
    op.create_index('ix_character_campaign', 'characters', ['campaign_id'])
    op.create_index('ix_vehicle_campaign', 'vehicles', ['campaign_id'])

    op.create_table(
        'fights',
        _id(),
        sa.Column('campaign_id', sa.String(length=32), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sequence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('sequence >= 0', name='ck_fights_sequence_non_negative'),
        sa.ForeignKeyConstraint(
            ['campaign_id'], ['campaigns.id'],
            name='fk_fights_campaign_id_campaigns', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_fights'),
    )
    op.create_index('ix_fight_campaign', 'fights', ['campaign_id'])

    op.create_table(
        'locations',
        _id(),
        sa.Column('fight_id', sa.String(length=32), nullable=True),
        sa.Column('site_id', sa.String(length=32), nullable=True),
        sa.Column('copied_from_location_id', sa.String(length=32), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(length=16), nullable=True),
        sa.Column('position_x', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('position_y', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('width', sa.Integer(), nullable=False, server_default='200'),
        sa.Column('height', sa.Integer(), nullable=False, server_default='150'),
        *_timestamps(),
        sa.CheckConstraint(
            '(fight_id IS NOT NULL AND site_id IS NULL) '
            'OR (fight_id IS NULL AND site_id IS NOT NULL)',
            name='ck_locations_location_scope',
        ),
        sa.ForeignKeyConstraint(
            ['fight_id'], ['fights.id'],
            name='fk_locations_fight_id_fights', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['site_id'], ['sites.id'],
            name='fk_locations_site_id_sites', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['copied_from_location_id'], ['locations.id'],
            name='fk_locations_copied_from_location_id_locations', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_locations'),
    )
    op.create_index('ix_location_fight', 'locations', ['fight_id'])
    op.create_index('ix_location_site', 'locations', ['site_id'])
    op.create_index(
        'uq_location_fight_name', 'locations', ['fight_id', sa.text('lower(name)')],
        unique=True,
        sqlite_where=sa.text('fight_id IS NOT NULL'),
        postgresql_where=sa.text('fight_id IS NOT NULL'),
    )
    op.create_index(
        'uq_location_site_name', 'locations', ['site_id', sa.text('lower(name)')],
        unique=True,
        sqlite_where=sa.text('site_id IS NOT NULL'),
        postgresql_where=sa.text('site_id IS NOT NULL'),
    )

    op.create_table(
        'shots',
        _id(),
        sa.Column('fight_id', sa.String(length=32), nullable=False),
        sa.Column('character_id', sa.String(length=32), nullable=True),
        sa.Column('vehicle_id', sa.String(length=32), nullable=True),
        sa.Column('shot', sa.Integer(), nullable=True),
        sa.Column('impairments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('acted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('was_rammed_or_damaged', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('driver_id', sa.String(length=32), nullable=True),
        sa.Column('driving_id', sa.String(length=32), nullable=True),
        sa.Column('location_id', sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('impairments >= 0', name='ck_shots_impairments_non_negative'),
        sa.ForeignKeyConstraint(
            ['fight_id'], ['fights.id'], name='fk_shots_fight_id_fights', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['character_id'], ['characters.id'],
            name='fk_shots_character_id_characters', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['vehicle_id'], ['vehicles.id'],
            name='fk_shots_vehicle_id_vehicles', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['driver_id'], ['shots.id'], name='fk_shots_driver_id_shots', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['driving_id'], ['shots.id'], name='fk_shots_driving_id_shots', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['location_id'], ['locations.id'],
            name='fk_shots_location_id_locations', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_shots'),
    )
    op.create_index('ix_shot_fight', 'shots', ['fight_id'])
    op.create_index('ix_shot_fight_character', 'shots', ['fight_id', 'character_id'])
    op.create_index('ix_shot_fight_vehicle', 'shots', ['fight_id', 'vehicle_id'])
    op.create_index('ix_shot_driver', 'shots', ['driver_id'])
    op.create_index('ix_shot_driving', 'shots', ['driving_id'])

    op.create_table(
        'chase_relationships',
        _id(),
        sa.Column('fight_id', sa.String(length=32), nullable=False),
        sa.Column('pursuer_id', sa.String(length=32), nullable=False),
        sa.Column('evader_id', sa.String(length=32), nullable=False),
        sa.Column('position', sa.String(length=8), nullable=False, server_default='far'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('pursuer_id <> evader_id', name='ck_chase_relationships_different_shots'),
        sa.CheckConstraint(
            "position IN ('near', 'far')", name='ck_chase_relationships_position_enum'
        ),
        sa.ForeignKeyConstraint(
            ['fight_id'], ['fights.id'],
            name='fk_chase_relationships_fight_id_fights', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['pursuer_id'], ['shots.id'],
            name='fk_chase_relationships_pursuer_id_shots', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['evader_id'], ['shots.id'],
            name='fk_chase_relationships_evader_id_shots', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_chase_relationships'),
    )
    op.create_index('ix_chase_fight', 'chase_relationships', ['fight_id'])
    op.create_index(
        'uq_chase_active_pair', 'chase_relationships', ['pursuer_id', 'evader_id', 'fight_id'],
        unique=True,
        sqlite_where=sa.text('active'),
        postgresql_where=sa.text('active'),
    )

    op.create_table(
        'character_effects',
        _id(),
        sa.Column('shot_id', sa.String(length=32), nullable=True),
        sa.Column('character_id', sa.String(length=32), nullable=True),
        sa.Column('vehicle_id', sa.String(length=32), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('severity', sa.String(length=32), nullable=True),
        sa.Column('action_value', sa.String(length=64), nullable=True),
        sa.Column('change', sa.String(length=32), nullable=True),
        sa.Column('end_sequence', sa.Integer(), nullable=True),
        sa.Column('end_shot', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            'shot_id IS NOT NULL OR character_id IS NOT NULL OR vehicle_id IS NOT NULL',
            name='ck_character_effects_has_target',
        ),
        sa.ForeignKeyConstraint(
            ['shot_id'], ['shots.id'],
            name='fk_character_effects_shot_id_shots', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['character_id'], ['characters.id'],
            name='fk_character_effects_character_id_characters', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['vehicle_id'], ['vehicles.id'],
            name='fk_character_effects_vehicle_id_vehicles', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_character_effects'),
    )
    op.create_index('ix_effect_shot', 'character_effects', ['shot_id'])

    op.create_table(
        'location_connections',
        _id(),
        sa.Column('from_location_id', sa.String(length=32), nullable=False),
        sa.Column('to_location_id', sa.String(length=32), nullable=False),
        sa.Column('bidirectional', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('label', sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['from_location_id'], ['locations.id'],
            name='fk_location_connections_from_location_id_locations', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['to_location_id'], ['locations.id'],
            name='fk_location_connections_to_location_id_locations', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_location_connections'),
    )
    op.create_index('ix_connection_from', 'location_connections', ['from_location_id'])
    op.create_index('ix_connection_to', 'location_connections', ['to_location_id'])

    op.create_table(
        'fight_events',
        _id(),
        sa.Column('fight_id', sa.String(length=32), nullable=False),
        sa.Column('event_type', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('details_json', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['fight_id'], ['fights.id'],
            name='fk_fight_events_fight_id_fights', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_fight_events'),
    )
    op.create_index('ix_fight_event_fight', 'fight_events', ['fight_id', 'created_at'])


def downgrade() -> None:
    for table in (
        'fight_events',
        'location_connections',
        'character_effects',
        'chase_relationships',
        'shots',
        'locations',
        'fights',
        'sites',
        'vehicles',
        'characters',
        'campaigns',
    ):
        op.drop_table(table)
