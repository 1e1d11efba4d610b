"""
Tests for the tabular Q-learning agent.
"""
import numpy as np
import pytest

from algorithms.qlearning import QLearningAgent, RoundingDiscretizer, fit_vector


def make_agent(**kwargs):
    params = dict(state_size=9, action_size=7, seed=0)
    params.update(kwargs)
    return QLearningAgent(**params)


class TestActionSelection:
    """Test epsilon-greedy selection."""

    def test_ties_broken_randomly(self):
        """Test that equal maxima are chosen among at random."""
        agent = make_agent()
        state = [0, 0, 0, 0, 0, 0.5, 0, 0.5, 0]
        chosen = {agent.select_action(state, training=False) for _ in range(200)}
        assert len(chosen) > 1
        assert chosen <= set(range(7))

    def test_unseen_state_not_inserted(self):
        """Test that selecting for an unseen state leaves the table untouched."""
        agent = make_agent(epsilon=0.0)
        for _ in range(20):
            agent.select_action(np.random.RandomState(1).rand(9))
        assert len(agent.q_table) == 0

    def test_greedy_argmax(self):
        """Test that the greedy action is the unique maximum."""
        agent = make_agent()
        state = [0.1] * 9
        agent.q_table[agent.state_key(state)] = np.array([0, 0, 1.0, 0, 0, 0, -1.0])
        for _ in range(20):
            assert agent.select_action(state, training=False) == 2

    def test_full_exploration(self):
        """Test that epsilon 1 picks random actions even with a known best."""
        agent = make_agent(epsilon=1.0)
        state = [0.1] * 9
        agent.q_table[agent.state_key(state)] = np.array([5.0, 0, 0, 0, 0, 0, 0])
        chosen = {agent.select_action(state) for _ in range(200)}
        assert len(chosen) > 1

    def test_malformed_state(self):
        """Test that short or non-numeric states still yield a valid action."""
        agent = make_agent()
        for state in (None, [1.0, 2.0], ['a', float('nan')], [0.0] * 20):
            action = agent.select_action(state, training=False)
            assert 0 <= action < 7


class TestReplayBuffer:
    """Test replay buffer bounds and input repair."""

    def test_eviction_keeps_most_recent(self):
        """Test that overflow trims to the most recent trim_to entries."""
        agent = make_agent(capacity=100, trim_to=80)
        for i in range(101):
            agent.store_experience([0.0] * 9, 0, float(i), [0.0] * 9, False)
        assert len(agent.memory) == 80
        assert agent.memory[-1].reward == 100.0
        assert agent.memory[0].reward == 21.0

    def test_never_exceeds_capacity(self):
        """Test that the buffer length stays bounded."""
        agent = make_agent(capacity=50, trim_to=40)
        for i in range(500):
            agent.store_experience([0.0] * 9, i % 7, 0.0, [0.0] * 9, False)
            assert len(agent.memory) <= 50

    def test_zero_trim_stays_bounded(self):
        """Test that trim_to=0 still evicts and keeps the newest entry."""
        agent = make_agent(capacity=5, trim_to=0)
        for i in range(20):
            agent.store_experience([0.0] * 9, 0, float(i), [0.0] * 9, False)
            assert len(agent.memory) <= 5
        assert agent.trim_to == 1
        assert agent.memory[-1].reward == 19.0

    def test_zero_capacity_stays_bounded(self):
        """Test that capacity=0 is raised to a one-entry buffer."""
        agent = make_agent(capacity=0, trim_to=0)
        for i in range(10):
            agent.store_experience([0.0] * 9, 0, float(i), [0.0] * 9, False)
        assert agent.capacity == 1
        assert len(agent.memory) == 1
        assert agent.memory[0].reward == 9.0

    def test_malformed_experience_repaired(self):
        """Test that bad states, actions and rewards are sanitized on store."""
        agent = make_agent()
        agent.store_experience([1.0, 2.0], 99, float('nan'), None, 1)
        experience = agent.memory[-1]
        assert experience.state.shape == (9,)
        assert experience.state[:2].tolist() == [1.0, 2.0]
        assert experience.action == 6
        assert experience.reward == 0.0
        assert experience.next_state.tolist() == [0.0] * 9
        assert experience.done is True

    @pytest.mark.parametrize('action,expected', [(-3, 0), (2.5, 2), ('x', 0), (7, 6), (3, 3)])
    def test_action_repair(self, action, expected):
        """Test that invalid action indices are clamped into range."""
        agent = make_agent()
        agent.store_experience([0.0] * 9, action, 0.0, [0.0] * 9, False)
        assert agent.memory[-1].action == expected


class TestLearning:
    """Test the TD update and exploration decay."""

    def test_skip_below_threshold(self):
        """Test that learning is a no-op until the buffer holds min(batch, 100)."""
        agent = make_agent(batch_size=32)
        for _ in range(31):
            agent.store_experience([0.0] * 9, 0, 1.0, [0.0] * 9, True)
        assert agent.learn() is None
        assert len(agent.q_table) == 0

        agent.store_experience([0.0] * 9, 0, 1.0, [0.0] * 9, True)
        assert agent.learn() is not None

    def test_large_batch_threshold_capped(self):
        """Test that a large batch only needs min_learn_size entries."""
        agent = make_agent(batch_size=500, min_learn_size=100)
        for _ in range(100):
            agent.store_experience([0.0] * 9, 0, 0.0, [0.0] * 9, True)
        assert agent.learn() is not None

    def test_update_rule(self):
        """Test Q <- Q + lr * (target - Q) for a terminal transition."""
        agent = make_agent(learning_rate=0.5, batch_size=1, min_learn_size=1)
        state = [0.2] * 9
        agent.store_experience(state, 3, 1.0, [0.0] * 9, True)

        agent.learn()
        assert agent.get_q_values(state)[3] == pytest.approx(0.5)
        agent.learn()
        assert agent.get_q_values(state)[3] == pytest.approx(0.75)

    def test_bootstrap_from_next_state(self):
        """Test that non-terminal targets add gamma * max Q(next)."""
        agent = make_agent(learning_rate=1.0, gamma=0.5, batch_size=1, min_learn_size=1)
        state, next_state = [0.2] * 9, [0.4] * 9
        agent.q_table[agent.state_key(next_state)] = np.array([0, 0, 0, 0, 4.0, 0, 0])
        agent.store_experience(state, 1, 1.0, next_state, False)
        agent.learn()
        assert agent.get_q_values(state)[1] == pytest.approx(3.0)

    def test_td_error_returned(self):
        """Test that learn reports the mean absolute TD error."""
        agent = make_agent(learning_rate=0.5, batch_size=4, min_learn_size=1)
        agent.store_experience([0.0] * 9, 0, -2.0, [0.0] * 9, True)
        # Sequential updates on one transition: errors 2, 1, 0.5, 0.25
        assert agent.learn() == pytest.approx(0.9375)

    def test_no_decay_with_small_buffer(self):
        """Test that epsilon is unchanged while the buffer is small."""
        agent = make_agent(epsilon_decay=0.5, batch_size=1, min_learn_size=1)
        for _ in range(10):
            agent.store_experience([0.0] * 9, 0, 0.0, [0.0] * 9, True)
        agent.learn()
        assert agent.epsilon == 1.0

    def test_decay_with_large_buffer(self):
        """Test that epsilon decays once the buffer passes decay_after."""
        agent = make_agent(epsilon_decay=0.5, epsilon_min=0.05, batch_size=1, min_learn_size=1)
        for _ in range(501):
            agent.store_experience([0.0] * 9, 0, 0.0, [0.0] * 9, True)
        agent.learn()
        assert agent.epsilon == pytest.approx(0.5)
        for _ in range(20):
            agent.learn()
        assert agent.epsilon == pytest.approx(0.05)

    def test_toy_mdp_converges(self):
        """Test convergence to the optimal values of a two-state chain."""
        agent = QLearningAgent(state_size=2, action_size=2, gamma=0.9, learning_rate=0.5,
                               batch_size=32, min_learn_size=1,
                               discretizer=RoundingDiscretizer(sensor_dims=2), seed=3)
        a, b = [0.0, 0.0], [1.0, 0.0]
        transitions = [
            (a, 0, 0.0, b, False),
            (a, 1, 0.0, a, False),
            (b, 0, 1.0, a, True),
            (b, 1, 0.0, a, False),
        ]
        for transition in transitions:
            agent.store_experience(*transition)
        for _ in range(500):
            agent.learn()

        assert agent.get_q_values(a).tolist() == pytest.approx([0.9, 0.81], abs=1e-3)
        assert agent.get_q_values(b).tolist() == pytest.approx([1.0, 0.81], abs=1e-3)
        assert agent.select_action(a, training=False) == 0


class TestDiscretizer:
    """Test state keys."""

    def test_precision_per_coordinate(self):
        """Test sensor and kinematic coordinates use their own precision."""
        discretizer = RoundingDiscretizer(sensor_dims=2)
        assert discretizer.key([0.04, 0.26, -0.001, 0.126]) == '0.0,0.3,0.00,0.13'

    def test_negative_zero_folded(self):
        """Test that -0.0 and 0.0 share a key."""
        discretizer = RoundingDiscretizer(sensor_dims=1)
        assert discretizer.key([-0.04, -0.001]) == discretizer.key([0.0, 0.0])

    def test_nearby_states_share_key(self):
        """Test that states within rounding map to one row."""
        agent = make_agent()
        first = [0.11, 0, 0, 0, 0, 0.501, 0, 0.5, 0]
        second = [0.12, 0, 0, 0, 0, 0.499, 0, 0.5, 0]
        assert agent.state_key(first) == agent.state_key(second)

    def test_fit_vector(self):
        """Test padding, truncation and non-finite replacement."""
        assert fit_vector([1.0, float('inf')], 3).tolist() == [1.0, 0.0, 0.0]
        assert fit_vector([1.0, 2.0, 3.0, 4.0], 2).tolist() == [1.0, 2.0]


class TestQTablePersistence:
    """Test Q-table export and repair on load."""

    def test_round_trip(self):
        """Test that exported rows load back unchanged."""
        agent = make_agent(learning_rate=0.5, batch_size=1, min_learn_size=1)
        agent.store_experience([0.3] * 9, 2, 1.0, [0.0] * 9, True)
        agent.learn()
        data = agent.q_table_to_dict()

        restored = make_agent()
        assert restored.load_q_table(data) == len(data)
        assert restored.get_q_values([0.3] * 9)[2] == pytest.approx(0.5)

    def test_rows_repaired(self):
        """Test that short and long rows are fitted and junk rows skipped."""
        agent = make_agent()
        loaded = agent.load_q_table({
            'short': [1.0, 2.0],
            'long': [1.0] * 10,
            'junk': 'not a row',
            'mixed': [1.0, 'x'],
        })
        assert loaded == 3
        assert agent.q_table['short'].tolist() == [1.0, 2.0, 0, 0, 0, 0, 0]
        assert agent.q_table['long'].shape == (7,)
        assert agent.q_table['mixed'].tolist()[:2] == [1.0, 0.0]
        assert 'junk' not in agent.q_table

    @pytest.mark.parametrize('data', [None, 'corrupt', [1, 2, 3], 42])
    def test_non_mapping_gives_empty_table(self, data):
        """Test that an unusable blob yields an empty table."""
        agent = make_agent()
        agent.q_table['existing'] = np.ones(7)
        assert agent.load_q_table(data) == 0
        assert len(agent.q_table) == 0

    def test_reset(self):
        """Test that reset clears learned state."""
        agent = make_agent(epsilon=0.3)
        agent.q_table['k'] = np.ones(7)
        agent.store_experience([0.0] * 9, 0, 0.0, [0.0] * 9, False)
        agent.reset()
        assert len(agent.q_table) == 0
        assert len(agent.memory) == 0
        assert agent.epsilon == 1.0
